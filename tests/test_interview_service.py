"""
Tests for mock interviews: heuristic feedback and the session lifecycle
with an offline LLM and a mocked session repository.
"""

from unittest.mock import Mock

import pytest
from bson import ObjectId

from app.services.interview_service import (
    MAX_QUESTIONS,
    MIN_QUESTIONS,
    InterviewError,
    InterviewService,
    clamp_questions_target,
    communication_score,
    heuristic_feedback,
)

LONG_ANSWER = (
    "I designed the REST API for our placement project using FastAPI. Each resource had its own "
    "router, request bodies were validated with schemas, and we versioned endpoints so the mobile "
    "client kept working. I added pagination, consistent error responses and integration tests "
    "that ran in CI before every deploy."
)


class TestHeuristics:
    @pytest.mark.parametrize("value,expected", [
        (1, MIN_QUESTIONS), (5, 5), (99, MAX_QUESTIONS), ("7", 7), ("abc", 5), (None, 5),
    ])
    def test_clamp_questions_target(self, value, expected):
        assert clamp_questions_target(value) == expected

    def test_short_answer_scores_low(self):
        feedback = heuristic_feedback("Explain how indexing works in a database.", "It is fast.")
        assert feedback["score"] <= 3
        assert "Give a more complete answer with a concrete example" in feedback["improvements"]

    def test_relevant_detailed_answer_scores_higher(self):
        question = "Explain how you would design a REST API for a backend project you are familiar with."
        feedback = heuristic_feedback(question, LONG_ANSWER)
        assert feedback["score"] >= 6
        assert "Answer is detailed" in feedback["strengths"]
        assert 0 <= feedback["score"] <= 10

    def test_filler_words_are_penalised(self):
        answer = "um so like basically I uh think um the the answer is like basically caching"
        assert communication_score(answer) == 4.0
        assert "Reduce filler words" in heuristic_feedback("What is caching?", answer)["improvements"]

    def test_empty_answer_communication(self):
        assert communication_score("") == 0.0


class TestInterviewSession:
    @pytest.fixture
    def session_service(self):
        service = Mock()
        service.create.side_effect = lambda data: {**data, "_id": ObjectId(), "started_at": None}
        service.latest_completed.return_value = None
        return service

    @pytest.fixture
    def interviews(self, session_service, offline_llm):
        return InterviewService(session_service, offline_llm)

    def _start(self, interviews, **kwargs):
        student = {"_id": ObjectId(), "skills": ["Python"]}
        options = {"target_role": "Backend Developer", "questions_target": 3}
        options.update(kwargs)
        return interviews.start_session(student, **options)

    def test_start_asks_first_question(self, interviews):
        session = self._start(interviews)

        assert session["status"] == "in-progress"
        assert session["questions_target"] == 3
        assert len(session["questions"]) == 1
        assert session["questions"][0]["type"] == "technical"
        assert "Backend Developer" in session["questions"][0]["question"]

    def test_invalid_options(self, interviews):
        with pytest.raises(InterviewError):
            self._start(interviews, difficulty="impossible")
        with pytest.raises(InterviewError):
            self._start(interviews, interview_types=["singing"])

    def test_question_types_rotate_until_target(self, interviews, session_service):
        session = self._start(interviews)

        first = interviews.submit_answer(session, LONG_ANSWER)
        second = interviews.submit_answer(session, LONG_ANSWER)
        third = interviews.submit_answer(session, LONG_ANSWER)

        assert first["next_question"]["type"] == "behavioral"
        assert second["next_question"]["type"] == "project"
        assert third["next_question"] is None
        assert third["is_last"] is True
        assert third["answered"] == 3
        assert session_service.save.call_count == 3

        with pytest.raises(InterviewError):
            interviews.submit_answer(session, LONG_ANSWER)

    def test_blank_answer_rejected(self, interviews):
        session = self._start(interviews)
        with pytest.raises(InterviewError):
            interviews.submit_answer(session, "   ")

    def test_complete_builds_summary(self, interviews, session_service):
        session = self._start(interviews)
        for _ in range(3):
            interviews.submit_answer(session, LONG_ANSWER)
        session_service.latest_completed.return_value = {"summary": {"overall_score": 10}}

        completed = interviews.complete_session(session)

        assert completed["status"] == "completed"
        summary = completed["summary"]
        assert 0 <= summary["overall_score"] <= 100
        assert summary["compared_to_previous"] == "better"
        assert set(summary["category_scores"]) == {"technical", "behavioral", "communication"}

        with pytest.raises(InterviewError):
            interviews.complete_session(completed)

    def test_complete_without_answers_is_abandoned(self, interviews):
        session = self._start(interviews)
        completed = interviews.complete_session(session)
        assert completed["status"] == "abandoned"
        assert completed["summary"]["overall_score"] == 0

    def test_llm_feedback_is_clamped(self, session_service):
        llm = Mock(is_configured=True)
        llm.generate_interview_question.return_value = {"question": "What is a mutex?", "category": "concurrency"}
        llm.evaluate_interview_answer.return_value = {
            "score": 14, "strengths": ["Precise"], "improvements": [], "sample_answer": "A lock."
        }
        interviews = InterviewService(session_service, llm)
        session = self._start(interviews)

        result = interviews.submit_answer(session, LONG_ANSWER)

        assert session["questions"][0]["question"] == "What is a mutex?"
        assert result["feedback"]["score"] == 10
        assert result["feedback"]["strengths"] == ["Precise"]

    def test_stats_trend(self, session_service, offline_llm):
        session_service.list_by_student.return_value = [
            {"summary": {"overall_score": 70}},
            {"summary": {"overall_score": 50}},
        ]
        stats = InterviewService(session_service, offline_llm).get_stats(ObjectId())
        assert stats == {
            "total_sessions": 2, "average_score": 60, "best_score": 70,
            "latest_score": 70, "trend": "improving",
        }
