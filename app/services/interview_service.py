"""
Mock Interview Service

Text-only mock interviews for students:
1. start   - create a session and ask the first question
2. answer  - score the answer (LLM, heuristic fallback) and ask the next one
3. complete - summarise the session and compare with the previous one

Question types rotate through the session's interview types. The LLM is
optional: questions fall back to a small bank and feedback to a heuristic
based on length, filler words and keyword overlap with the question.
"""

import logging
import re
from collections import Counter
from typing import Any, List, Optional

from bson import ObjectId

from app.services.llm_client import get_llm_client, LLMClient
from app.services.mongo_service import InterviewSessionService
from app.utils.dates import utcnow, ensure_aware
from app.utils.scoring import round_half_up, as_list

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 3
MAX_QUESTIONS = 15
DEFAULT_QUESTIONS = 5

INTERVIEW_TYPES = ("technical", "behavioral", "project")
DIFFICULTIES = ("beginner", "intermediate", "advanced")

FILLER_WORDS = {"um", "uh", "umm", "like", "basically", "actually", "literally", "so", "hmm"}
KEYWORD_STOPWORDS = {
    "what", "when", "where", "which", "while", "would", "could", "should", "about", "your",
    "have", "that", "this", "with", "from", "they", "them", "there", "their", "tell", "describe",
    "explain", "give", "example", "how", "does", "between", "difference",
}

QUESTION_BANK = {
    "technical": [
        "Explain how you would design a REST API for a {role} project you are familiar with.",
        "What is the difference between a process and a thread, and when would you use each?",
        "How do you find and fix a performance bottleneck in an application?",
        "Explain how indexing works in a database and when an index can hurt performance.",
        "How would you make a web service resilient to failures of a dependency it calls?",
    ],
    "behavioral": [
        "Tell me about a time you disagreed with a teammate. How did you resolve it?",
        "Describe a situation where you had to learn something new quickly.",
        "Tell me about a mistake you made on a project and what you learned from it.",
        "How do you prioritise when you have several deadlines at once?",
    ],
    "project": [
        "Walk me through the most challenging project you have built. What was your role?",
        "Describe a technical decision in one of your projects that you would change today.",
        "How did you test and validate the project you are most proud of?",
        "Which part of your projects best shows you are ready for a {role} role?",
    ],
}


class InterviewError(Exception):
    """Invalid interview operation (bad state or input); safe to show users."""


def clamp_questions_target(value: Any) -> int:
    try:
        parsed = int(round(float(value)))
    except (TypeError, ValueError):
        return DEFAULT_QUESTIONS
    return max(MIN_QUESTIONS, min(MAX_QUESTIONS, parsed))


def _keywords(text: str) -> set:
    words = re.findall(r"[a-zA-Z][a-zA-Z+#.]*", text.lower())
    return {w.strip(".") for w in words if len(w) > 3 and w not in KEYWORD_STOPWORDS}


def communication_score(answer: str) -> float:
    """0-10 from answer length and filler-word density."""
    words = answer.split()
    if not words:
        return 0.0
    fillers = sum(1 for w in words if w.lower().strip(",.!?") in FILLER_WORDS)
    if len(words) < 10:
        score = 3.0
    elif len(words) < 30:
        score = 6.0
    elif len(words) <= 250:
        score = 8.0
    else:
        score = 7.0
    if fillers / len(words) > 0.05:
        score -= 2
    return max(score, 0.0)


def heuristic_feedback(question: str, answer: str) -> dict:
    """Deterministic answer feedback used when the LLM is unavailable."""
    words = answer.split()
    word_count = len(words)
    fillers = [w for w in words if w.lower().strip(",.!?") in FILLER_WORDS]
    question_keywords = _keywords(question)
    overlap = len(question_keywords & _keywords(answer)) / len(question_keywords) if question_keywords else 0

    if word_count < 10:
        score = 2.0
    elif word_count < 30:
        score = 4.0
    elif word_count < 80:
        score = 6.0
    else:
        score = 7.0
    score += overlap * 3
    if word_count and len(fillers) / word_count > 0.05:
        score -= 1
    score = round_half_up(max(0.0, min(10.0, score)), 1)

    strengths = []
    improvements = []
    if word_count >= 30:
        strengths.append("Answer is detailed")
    else:
        improvements.append("Give a more complete answer with a concrete example")
    if overlap >= 0.5:
        strengths.append("Stays relevant to the question")
    else:
        improvements.append("Address the key terms of the question directly")
    if word_count and len(fillers) / word_count > 0.05:
        improvements.append("Reduce filler words")
    elif word_count >= 10:
        strengths.append("Clear delivery")

    return {
        "score": score,
        "strengths": strengths,
        "improvements": improvements,
        "sample_answer": "",
        "word_count": word_count,
        "filler_words": len(fillers),
    }


class InterviewService:
    def __init__(self, session_service: InterviewSessionService = None, llm: LLMClient = None):
        self.session_service = session_service or InterviewSessionService()
        self.llm = llm or get_llm_client()

    # ------------------------------------------------------------------
    # Questions and feedback
    # ------------------------------------------------------------------

    def _fallback_question(self, question_type: str, target_role: str, asked: List[str]) -> dict:
        role = target_role or "software engineering"
        for template in QUESTION_BANK[question_type]:
            question = template.format(role=role)
            if question not in asked:
                return {"question": question, "category": question_type}
        # Bank exhausted; repeat the first one
        return {"question": QUESTION_BANK[question_type][0].format(role=role), "category": question_type}

    def _next_question(self, session: dict, skills: List[str]) -> dict:
        index = len(session["questions"])
        types = session["interview_types"]
        question_type = types[index % len(types)]
        asked = [q["question"] for q in session["questions"]]

        generated = None
        if self.llm.is_configured:
            try:
                generated = self.llm.generate_interview_question(
                    session.get("target_role") or "",
                    session["difficulty"],
                    question_type,
                    asked,
                    skills,
                )
                if not generated.get("question"):
                    generated = None
            except Exception as e:
                logger.error(f"Error generating interview question: {e}")
        if generated is None:
            generated = self._fallback_question(question_type, session.get("target_role"), asked)

        return {
            "id": str(ObjectId()),
            "type": question_type,
            "category": generated.get("category") or question_type,
            "question": generated["question"],
            "answer": "",
            "answered_at": None,
            "feedback": None,
        }

    def _evaluate(self, question: str, answer: str, target_role: str) -> dict:
        feedback = heuristic_feedback(question, answer)
        if self.llm.is_configured:
            try:
                evaluated = self.llm.evaluate_interview_answer(question, answer, target_role)
                score = float(evaluated.get("score", feedback["score"]))
                feedback.update({
                    "score": round_half_up(max(0.0, min(10.0, score)), 1),
                    "strengths": as_list(evaluated.get("strengths"))[:3],
                    "improvements": as_list(evaluated.get("improvements"))[:3],
                    "sample_answer": evaluated.get("sample_answer") or "",
                })
            except Exception as e:
                logger.error(f"Error evaluating interview answer, using heuristic: {e}")
        feedback["communication"] = communication_score(answer)
        return feedback

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self,
        student: dict,
        target_role: str = "",
        difficulty: str = "intermediate",
        interview_types: List[str] = None,
        questions_target: Any = DEFAULT_QUESTIONS
    ) -> dict:
        types = [t for t in (interview_types or INTERVIEW_TYPES) if t in INTERVIEW_TYPES]
        if not types:
            raise InterviewError(f"interview_types must include one of: {', '.join(INTERVIEW_TYPES)}")
        if difficulty not in DIFFICULTIES:
            raise InterviewError(f"difficulty must be one of: {', '.join(DIFFICULTIES)}")

        session = {
            "student_id": student["_id"],
            "target_role": (target_role or "").strip(),
            "difficulty": difficulty,
            "interview_types": types,
            "questions_target": clamp_questions_target(questions_target),
            "questions": [],
            "current_question_index": 0,
            "summary": None,
            "status": "in-progress",
            "completed_at": None,
            "duration_minutes": 0,
        }
        session["questions"].append(self._next_question(session, as_list(student.get("skills"))))
        return self.session_service.create(session)

    def submit_answer(self, session: dict, answer: str, skills: List[str] = None) -> dict:
        """Score the current question and ask the next one until the target is reached."""
        if session["status"] != "in-progress":
            raise InterviewError("Session is not in progress")
        answer = (answer or "").strip()
        if not answer:
            raise InterviewError("Answer is required")

        index = session["current_question_index"]
        if index >= len(session["questions"]):
            raise InterviewError("All questions have been answered; complete the session")

        question = session["questions"][index]
        feedback = self._evaluate(question["question"], answer, session.get("target_role") or "")
        question["answer"] = answer
        question["answered_at"] = utcnow()
        question["feedback"] = feedback
        session["current_question_index"] = index + 1

        next_question = None
        if session["current_question_index"] < session["questions_target"]:
            next_question = self._next_question(session, skills or [])
            session["questions"].append(next_question)

        self.session_service.save(session)
        return {
            "feedback": feedback,
            "next_question": next_question,
            "answered": session["current_question_index"],
            "questions_target": session["questions_target"],
            "is_last": next_question is None,
        }

    def build_summary(self, session: dict, previous: Optional[dict]) -> dict:
        answered = [q for q in session["questions"] if q.get("answer") and q.get("feedback")]
        if not answered:
            return {
                "overall_score": 0,
                "category_scores": {"technical": 0, "behavioral": 0, "communication": 0},
                "top_strengths": [],
                "areas_to_improve": [],
                "compared_to_previous": "unknown",
            }

        def average(questions: List[dict], key: str = "score") -> int:
            if not questions:
                return 0
            return int(round_half_up(sum(q["feedback"].get(key) or 0 for q in questions) / len(questions) * 10))

        overall = average(answered)
        technical = [q for q in answered if q["type"] in ("technical", "project")]
        behavioral = [q for q in answered if q["type"] == "behavioral"]

        strengths = Counter(s for q in answered for s in q["feedback"].get("strengths") or [])
        improvements = Counter(s for q in answered for s in q["feedback"].get("improvements") or [])

        compared = "unknown"
        previous_score = ((previous or {}).get("summary") or {}).get("overall_score")
        if previous_score is not None:
            if overall > previous_score + 5:
                compared = "better"
            elif overall < previous_score - 5:
                compared = "worse"
            else:
                compared = "same"

        return {
            "overall_score": overall,
            "category_scores": {
                "technical": average(technical),
                "behavioral": average(behavioral),
                "communication": average(answered, "communication"),
            },
            "top_strengths": [s for s, _ in strengths.most_common(3)],
            "areas_to_improve": [s for s, _ in improvements.most_common(3)],
            "compared_to_previous": compared,
        }

    def complete_session(self, session: dict) -> dict:
        """Summarise and close the session. Sessions with no answers are abandoned."""
        if session["status"] != "in-progress":
            raise InterviewError("Session is not in progress")

        previous = self.session_service.latest_completed(session["student_id"], exclude_id=session["_id"])
        now = utcnow()
        session["summary"] = self.build_summary(session, previous)
        session["completed_at"] = now
        started_at = session.get("started_at")
        if started_at:
            session["duration_minutes"] = int((now - ensure_aware(started_at)).total_seconds() // 60)
        answered = session["current_question_index"]
        session["status"] = "completed" if answered > 0 else "abandoned"
        self.session_service.save(session)
        return session

    def get_stats(self, student_id: Any) -> dict:
        completed = self.session_service.list_by_student(student_id, status="completed", limit=100)
        scores = [(s.get("summary") or {}).get("overall_score") or 0 for s in completed]
        if not scores:
            return {"total_sessions": 0, "average_score": 0, "best_score": 0, "trend": "unknown"}

        # Sessions are newest first
        trend = "stable"
        if len(scores) >= 2:
            if scores[0] > scores[1]:
                trend = "improving"
            elif scores[0] < scores[1]:
                trend = "declining"
        return {
            "total_sessions": len(scores),
            "average_score": int(round_half_up(sum(scores) / len(scores))),
            "best_score": max(scores),
            "latest_score": scores[0],
            "trend": trend if len(scores) >= 2 else "unknown",
        }


def get_mock_interview_service() -> InterviewService:
    return InterviewService()
