"""
Job Matching Service

PURPOSE:
Score how well each student fits a job posting and cache the ranked
results on the job document for recruiters.

HOW IT WORKS:
1. Build the student's skill pool (profile skills + project tags)
2. Compute a weighted score from independent sub-scores:
   required skills (30), preferred skills (10), projects (25),
   readiness (20), growth (10), CGPA (3), certifications (2),
   coding consistency (5)
3. Filter candidates (team match or minimum skill percentage)
4. Keep the top 50, attach a short justification, overwrite the job cache

The recruiter talent pool uses a separate dynamic score driven by the
recruiter's ad-hoc skill filter instead of a job.
"""

import logging
import re
from collections import Counter
from typing import List, Dict, Optional, Any

from app.core.config import get_settings
from app.services.llm_client import get_llm_client, LLMClient
from app.services.mongo_service import (
    StudentService,
    JobService,
    serialize_doc,
    to_object_id,
)
from app.utils.dates import utcnow
from app.utils.scoring import round_half_up, as_list

logger = logging.getLogger(__name__)

settings = get_settings()

MAX_CACHED_MATCHES = 50
TOP_MATCHES_RETURNED = 10

COMMON_SKILLS = [
    "JavaScript", "TypeScript", "Python", "Java", "C", "C++", "C#", "Go", "Rust", "PHP",
    "React", "Angular", "Vue", "Next.js", "Node.js", "Express", "Django", "Flask", "Spring",
    "MongoDB", "PostgreSQL", "MySQL", "Redis", "SQL", "AWS", "Azure", "GCP", "Docker", "Kubernetes",
    "HTML", "CSS", "Tailwind", "GraphQL", "REST", "Microservices", "Machine Learning", "AI", "NLP",
]

STOPWORDS = {
    "the", "and", "or", "to", "of", "in", "for", "with", "a", "an", "on", "at", "by", "is", "are",
    "as", "from", "this", "that", "will", "be", "we", "you", "your", "our", "their", "they", "it",
    "role", "job", "position", "candidate", "experience", "skills", "required", "preferred",
}


class JobNotFoundError(Exception):
    pass


# ============================================================
# HELPERS
# ============================================================

def unique_list(items: List[Any]) -> List[str]:
    seen = []
    for item in items:
        text = str(item).strip()
        if text and text not in seen:
            seen.append(text)
    return seen


def build_skill_pool(student: dict) -> List[str]:
    """Profile skills plus every project tag, trimmed and lowercased."""
    pool = [str(s) for s in as_list(student.get("skills"))]
    for project in as_list(student.get("projects")):
        if isinstance(project, dict):
            pool.extend(str(tag) for tag in as_list(project.get("tags")))
    return [s for s in (p.strip().lower() for p in pool) if s]


def skill_in_pool(skill: str, pool: List[str]) -> bool:
    """A skill matches when it equals, contains, or is contained in a pool entry."""
    skill_lower = skill.strip().lower()
    if not skill_lower:
        return False
    return any(s == skill_lower or skill_lower in s or s in skill_lower for s in pool)


def _project_tags(project: dict) -> List[str]:
    return [str(tag) for tag in as_list(project.get("tags"))]


def _is_verified(item: dict) -> bool:
    return item.get("status") == "verified" or bool(item.get("verified"))


# ============================================================
# JOB MATCH SCORE
# ============================================================

def calculate_job_match_score(student: dict, job: dict) -> dict:
    """
    Score one student against one job.

    Returns:
        {
            "total_score": int 0-100,
            "breakdown": {required_skills, preferred_skills, projects, readiness,
                          growth, cgpa, certifications, consistency},
            "skills_matched": [...],
            "skills_missing": [...],
            "relevant_projects_count": int
        }
    """
    pool = build_skill_pool(student)
    required_skills = unique_list(as_list(job.get("required_skills")))
    preferred_skills = unique_list(as_list(job.get("preferred_skills")))
    projects = [p for p in as_list(student.get("projects")) if isinstance(p, dict)]
    breakdown = {}
    score = 0.0

    # 1. Required skills (30)
    skills_matched = [s for s in required_skills if skill_in_pool(s, pool)]
    skills_missing = [s for s in required_skills if s not in skills_matched]
    if required_skills:
        required_score = len(skills_matched) / len(required_skills) * 30
    else:
        required_score = 15
    score += required_score
    breakdown["required_skills"] = int(round_half_up(required_score))

    # 2. Preferred skills (10)
    if preferred_skills:
        preferred_matched = [s for s in preferred_skills if skill_in_pool(s, pool)]
        preferred_score = min(len(preferred_matched) / len(preferred_skills) * 10, 10)
    else:
        preferred_score = 5
    score += preferred_score
    breakdown["preferred_skills"] = int(round_half_up(preferred_score))

    # 3. Project relevance (25)
    required_lower = [s.lower() for s in required_skills]
    relevant_projects = [
        p for p in projects
        if any(req in tag.lower() for tag in _project_tags(p) for req in required_lower)
    ]
    verified_relevant = [p for p in relevant_projects if _is_verified(p)]
    unique_tags = {tag for p in relevant_projects for tag in _project_tags(p)}
    project_score = (
        min(len(relevant_projects) * 4, 15)
        + min(len(verified_relevant) * 2, 5)
        + min(len(unique_tags), 5)
    )
    score += project_score
    breakdown["projects"] = int(round_half_up(project_score))

    # 4. Readiness (20)
    readiness = student.get("readiness_score") or 0
    readiness_score = readiness / 100 * 20
    score += readiness_score
    breakdown["readiness"] = int(round_half_up(readiness_score))

    # 5. Growth trajectory (10)
    history = [h for h in as_list(student.get("readiness_history")) if isinstance(h, dict)]
    if len(history) >= 3:
        recent = history[-3:]
        growth = (recent[-1].get("score") or 0) - (recent[0].get("score") or 0)
        growth_score = min(max(growth / 2, 0), 10)
    elif readiness >= 70:
        growth_score = 5
    else:
        growth_score = 0
    score += growth_score
    breakdown["growth"] = int(round_half_up(growth_score))

    # 6. CGPA (3)
    cgpa = student.get("cgpa")
    cgpa_score = cgpa / 10 * 3 if cgpa else 1.5
    score += cgpa_score
    breakdown["cgpa"] = round_half_up(cgpa_score, 1)

    # 7. Certifications (2)
    verified_certs = [
        c for c in as_list(student.get("certifications"))
        if isinstance(c, dict) and c.get("status") == "verified"
    ]
    cert_score = min(len(verified_certs) * 0.5, 2)
    score += cert_score
    breakdown["certifications"] = round_half_up(cert_score, 1)

    # 8. Coding consistency (5): a 100-day streak earns full marks
    leetcode_streak = (student.get("leetcode_stats") or {}).get("streak") or 0
    github_streak = (student.get("github_stats") or {}).get("streak") or 0
    consistency_score = min(max(leetcode_streak, github_streak) / 20, 5)
    score += consistency_score
    breakdown["consistency"] = round_half_up(consistency_score, 1)

    # Floor for students covering at least half of the required skills
    if skills_matched and len(skills_matched) >= len(required_skills) * 0.5:
        minimum_score = 25 + (required_score / 30) * 25
        score = max(score, minimum_score)

    return {
        "total_score": int(min(round_half_up(score), 100)),
        "breakdown": breakdown,
        "skills_matched": skills_matched,
        "skills_missing": skills_missing,
        "relevant_projects_count": len(relevant_projects),
    }


# ============================================================
# JOB DESCRIPTION HELPERS (LLM with deterministic fallbacks)
# ============================================================

def parse_job_description_to_skills(description: str, llm: LLMClient = None) -> dict:
    """
    Extract {"required_skills", "preferred_skills"} from free text.
    Falls back to a common-skills keyword scan, then to the most
    frequent non-stopword terms.
    """
    if not description or not description.strip():
        return {"required_skills": [], "preferred_skills": []}

    llm = llm or get_llm_client()
    if llm.is_configured:
        try:
            parsed = llm.parse_job_description(description)
            return {
                "required_skills": unique_list(as_list(parsed.get("required_skills"))),
                "preferred_skills": unique_list(as_list(parsed.get("preferred_skills"))),
            }
        except Exception as e:
            logger.error(f"Error parsing job description: {e}")

    lower = description.lower()
    matched = [skill for skill in COMMON_SKILLS if skill.lower() in lower]
    if matched:
        return {"required_skills": unique_list(matched), "preferred_skills": []}

    words = re.sub(r"[^a-zA-Z0-9+\s]", " ", description).lower().split()
    keywords = [w for w in words if len(w) > 2 and w not in STOPWORDS]
    top_words = [word.capitalize() for word, _ in Counter(keywords).most_common(8)]
    return {"required_skills": unique_list(top_words), "preferred_skills": []}


def generate_job_description(job_info: dict, llm: LLMClient = None) -> dict:
    """
    Build description, responsibilities and qualifications for a posting.
    job_info keys: title, company, location, experience, required_skills, preferred_skills
    """
    title = job_info.get("title") or ""
    location = job_info.get("location") or ""
    experience = job_info.get("experience") or ""
    required_skills = unique_list(as_list(job_info.get("required_skills")))
    preferred_skills = unique_list(as_list(job_info.get("preferred_skills")))

    llm = llm or get_llm_client()
    if llm.is_configured:
        try:
            parsed = llm.generate_job_description(
                title=title,
                company=job_info.get("company") or "",
                location=location,
                experience=experience,
                required_skills=required_skills,
                preferred_skills=preferred_skills,
            )
            return {
                "description": parsed.get("description") or "",
                "responsibilities": as_list(parsed.get("responsibilities")),
                "qualifications": as_list(parsed.get("qualifications")),
            }
        except Exception as e:
            logger.error(f"Error generating job description: {e}")

    skills_text = ", ".join(required_skills) or "modern software development"
    first_skill = required_skills[0] if required_skills else "software"
    return {
        "description": (
            f"We are looking for a talented {title} to join our team in {location}. "
            f"This role requires expertise in {skills_text} and offers excellent growth opportunities."
        ),
        "responsibilities": [
            f"Work on {first_skill} development",
            "Collaborate with cross-functional teams",
            "Write clean, maintainable code",
            "Participate in code reviews",
            "Contribute to technical documentation",
        ],
        "qualifications": [
            f"Strong knowledge of {skills_text}",
            experience or "0-2 years of relevant experience",
            "Good problem-solving skills",
            "Team player with strong communication",
            "Bachelor's degree in Computer Science or related field",
        ],
    }


def _fallback_match_reason(student: dict, job: dict, match_data: dict) -> str:
    total = match_data["total_score"]
    matched = match_data["skills_matched"]
    missing = match_data["skills_missing"]
    relevant = match_data["relevant_projects_count"]
    readiness = student.get("readiness_score") or 0
    required_count = len(as_list(job.get("required_skills")))

    if total >= 80:
        gaps = (
            f"May benefit from developing: {', '.join(missing[:2])}."
            if missing else "Excellent skill coverage."
        )
        return (
            f"Strong match with {len(matched)}/{required_count} required skills and "
            f"{relevant} relevant projects. Demonstrates consistent growth with "
            f"{readiness}% readiness score. {gaps}"
        )
    if total >= 60:
        return (
            f"Good match with solid foundation in {', '.join(matched[:3])}. "
            f"Has {relevant} relevant projects and {readiness}% readiness. "
            f"Could strengthen: {', '.join(missing[:2]) or 'advanced topics'}."
        )
    return (
        f"Potential match with {len(matched)} matching skills and growth potential. "
        f"Would benefit from gaining experience in {', '.join(missing[:2]) or 'the core stack'} "
        f"to better align with role requirements."
    )


def generate_match_reason(student: dict, job: dict, match_data: dict, llm: LLMClient = None) -> str:
    """2-3 sentence justification; templated when the LLM is unavailable."""
    llm = llm or get_llm_client()
    if not llm.is_configured:
        return _fallback_match_reason(student, job, match_data)

    total = match_data["total_score"]
    strength = "strong" if total >= 80 else "good" if total >= 60 else "potential"
    prompt = f"""Explain why this student is a {strength} match for this job in 2-3 concise sentences.

Student Profile:
- Name: {student.get('name', '')}
- Skills: {', '.join(str(s) for s in as_list(student.get('skills'))) or 'Not specified'}
- Relevant Projects: {match_data['relevant_projects_count']} (Total: {len(as_list(student.get('projects')))})
- Readiness Score: {student.get('readiness_score') or 0}%
- CGPA: {student.get('cgpa') or 'N/A'}
- LeetCode Streak: {(student.get('leetcode_stats') or {}).get('streak') or 0} days
- Certifications: {len(as_list(student.get('certifications')))}

Job Requirements:
- Title: {job.get('title', '')}
- Required Skills: {', '.join(as_list(job.get('required_skills')))}
- Preferred Skills: {', '.join(as_list(job.get('preferred_skills'))) or 'None'}

Match Details:
- Match Score: {total}%
- Skills Matched: {', '.join(match_data['skills_matched']) or 'None'}
- Skills Missing: {', '.join(match_data['skills_missing']) or 'None'}

Keep it positive, specific, and actionable. Maximum 3 sentences."""

    try:
        reason = llm.generate_match_reason(prompt)
        return reason or _fallback_match_reason(student, job, match_data)
    except Exception as e:
        logger.error(f"Error generating match reason: {e}")
        return _fallback_match_reason(student, job, match_data)


# ============================================================
# TALENT POOL (recruiter browsing without a job)
# ============================================================

def _pool_contains(pool: List[str], skill: str) -> bool:
    skill_lower = skill.lower()
    return any(skill_lower in s for s in pool)


def calculate_dynamic_score(student: dict, filters: dict) -> int:
    """
    Score a student against a recruiter's ad-hoc filter.

    Weights: readiness 20%, skill match 30 (+5 frequency bonus),
    project relevance 25, certifications 10, consistency 10, CGPA 5.
    """
    skills = [s for s in as_list(filters.get("skills")) if s]
    projects = [p for p in as_list(student.get("projects")) if isinstance(p, dict)]
    readiness = student.get("readiness_score") or 0
    score = 0.0

    base_readiness = readiness * 0.20
    score += base_readiness

    pool = build_skill_pool(student)
    if skills:
        matched = [s for s in skills if _pool_contains(pool, s)]
        skill_score = len(matched) / len(skills) * 30
        frequency = [
            len([p for p in projects if any(skill.lower() in t.lower() for t in _project_tags(p))])
            for skill in skills
        ]
        skill_score += min(sum(frequency) / len(skills) * 2, 5)
    else:
        skill_score = 15
    score += skill_score

    if skills:
        relevant = [
            p for p in projects
            if any(skill.lower() in t.lower() for t in _project_tags(p) for skill in skills)
        ]
        project_score = min(len(relevant) * 5, 20)
        project_score += min(len([p for p in relevant if _is_verified(p)]) * 2.5, 5)
        if skill_score > 0 and not relevant:
            project_score = 5
    else:
        project_score = min(len(projects) * 3, 15)
        project_score += min(len([p for p in projects if _is_verified(p)]) * 2, 10)
    score += project_score

    verified_certs = [
        c for c in as_list(student.get("certifications"))
        if isinstance(c, dict) and c.get("status") == "verified"
    ]
    if skills:
        relevant_certs = [
            c for c in verified_certs
            if any(
                skill.lower() in (c.get("name") or "").lower()
                or skill.lower() in (c.get("provider") or "").lower()
                for skill in skills
            )
        ]
        score += min(len(relevant_certs) * 5, 10)
    else:
        score += min(len(verified_certs) * 2, 10)

    # Consistency: streak (5) + project volume (5)
    score += min((student.get("streak_days") or 0) / 10, 5)
    score += min(len(projects) / 2, 5)

    cgpa = student.get("cgpa")
    score += cgpa / 10 * 5 if cgpa else 2.5

    if skills and skill_score > 0:
        score = max(score, max(base_readiness + skill_score, 25))

    return int(min(round_half_up(score), 100))


def filter_talent_pool(students: List[dict], filters: dict) -> List[dict]:
    """
    Attach `dynamic_score` to every student, apply recruiter filters
    and sort by score descending.
    """
    skills = [s for s in as_list(filters.get("skills")) if s]
    min_projects = filters.get("min_projects") or 0
    min_cgpa = filters.get("min_cgpa") or 0
    min_score = filters.get("min_score") or 0

    scored = []
    for student in students:
        pool = build_skill_pool(student)
        if skills and not any(_pool_contains(pool, s) for s in skills):
            continue
        if min_projects and len(as_list(student.get("projects"))) < min_projects:
            continue
        if min_cgpa and (student.get("cgpa") or 0) < min_cgpa:
            continue

        dynamic_score = calculate_dynamic_score(student, filters)
        if min_score and dynamic_score < min_score:
            continue

        scored.append({
            **student,
            "dynamic_score": dynamic_score,
            "original_readiness_score": student.get("readiness_score") or 0,
        })

    scored.sort(key=lambda s: s["dynamic_score"], reverse=True)
    return scored


# ============================================================
# MATCH ORCHESTRATION
# ============================================================

class JobMatchingService:
    """
    Runs the matcher for a job and maintains the cached results.
    """

    def __init__(
        self,
        job_service: JobService = None,
        student_service: StudentService = None,
        llm: LLMClient = None
    ):
        self.job_service = job_service or JobService()
        self.student_service = student_service or StudentService()
        self.llm = llm or get_llm_client()
        self.min_skill_match_percentage = settings.min_skill_match_percentage

    def _pool_coverage(self, students: List[dict], required_skills: List[str]) -> List[str]:
        """Required skills covered by the combined student pool (skills, tags, cert names)."""
        combined = set()
        for student in students:
            combined.update(build_skill_pool(student))
            for cert in as_list(student.get("certifications")):
                if isinstance(cert, dict) and cert.get("name"):
                    combined.add(str(cert["name"]).strip().lower())
        combined.discard("")
        return [s for s in required_skills if skill_in_pool(s, list(combined))]

    def match_students_to_job(self, job_id: Any) -> dict:
        """
        Score every student, keep qualifying candidates and cache the top 50.

        If the combined student pool covers every required skill, any student
        with at least one matched skill qualifies (team match). Otherwise a
        student needs the configured minimum share of required skills.
        """
        job = self.job_service.get_by_id(job_id)
        if not job:
            raise JobNotFoundError("Job not found")

        students = self.student_service.list_students()
        required_skills = unique_list(as_list(job.get("required_skills")))
        covered = self._pool_coverage(students, required_skills)
        team_match = len(covered) == len(required_skills)

        logger.info(
            f"Matching {len(students)} students to job '{job.get('title')}' "
            f"(pool covers {len(covered)}/{len(required_skills)} required skills, "
            f"{'team' if team_match else 'individual'} matching)"
        )

        matches = []
        for student in students:
            match_data = calculate_job_match_score(student, job)
            matched_count = len(match_data["skills_matched"])

            if team_match:
                include = matched_count > 0
            else:
                percentage = matched_count / len(required_skills) * 100 if required_skills else 100
                include = percentage >= self.min_skill_match_percentage

            if include:
                matches.append((student, match_data))

        matches.sort(key=lambda m: m[1]["total_score"], reverse=True)

        now = utcnow()
        matched_students = []
        for student, match_data in matches[:MAX_CACHED_MATCHES]:
            matched_students.append({
                "student_id": student["_id"],
                "match_score": match_data["total_score"],
                "match_reason": generate_match_reason(student, job, match_data, self.llm),
                "skills_matched": match_data["skills_matched"],
                "skills_missing": match_data["skills_missing"],
                "last_updated": now,
            })

        self.job_service.save_matches(job["_id"], matched_students)
        logger.info(f"Matched {len(matched_students)} students to job '{job.get('title')}'")

        return {
            "job_id": str(job["_id"]),
            "job_title": job.get("title"),
            "total_students": len(students),
            "match_count": len(matched_students),
            "matching_type": "team" if team_match else "individual",
            "top_matches": serialize_doc([
                {k: v for k, v in m.items() if k != "last_updated"}
                for m in matched_students[:TOP_MATCHES_RETURNED]
            ]),
        }

    def refresh_job_matches(self) -> int:
        """Re-run matching for every active job. Returns the number of jobs refreshed."""
        active_jobs = self.job_service.list_active()
        logger.info(f"Refreshing matches for {len(active_jobs)} active jobs")
        refreshed = 0
        for job in active_jobs:
            try:
                self.match_students_to_job(job["_id"])
                refreshed += 1
            except Exception as e:
                logger.error(f"Error refreshing matches for job {job['_id']}: {e}")
        return refreshed

    def get_matched_students(self, job: dict, limit: int = 50, min_score: int = 0) -> List[dict]:
        """Cached matches joined with a student summary, best first."""
        cached = [
            m for m in as_list(job.get("matched_students"))
            if (m.get("match_score") or 0) >= min_score
        ]
        cached.sort(key=lambda m: m.get("match_score") or 0, reverse=True)
        cached = cached[:limit]

        students = {
            s["_id"]: s for s in self.student_service.get_many([m["student_id"] for m in cached])
        }
        results = []
        for match in cached:
            student = students.get(match["student_id"])
            if not student:
                continue
            results.append({
                **match,
                "student": {
                    "_id": student["_id"],
                    "name": student.get("name"),
                    "email": student.get("email"),
                    "college": student.get("college"),
                    "branch": student.get("branch"),
                    "cgpa": student.get("cgpa"),
                    "readiness_score": student.get("readiness_score") or 0,
                    "skills": as_list(student.get("skills")),
                    "project_count": len(as_list(student.get("projects"))),
                },
            })
        return results

    def explain_match(self, job: dict, student_id: Any) -> Optional[dict]:
        """Fresh score breakdown plus the cached reason for one student."""
        student = self.student_service.get_by_id(student_id)
        if not student:
            return None

        match_data = calculate_job_match_score(student, job)
        target = to_object_id(student_id)
        cached = next(
            (m for m in as_list(job.get("matched_students")) if m.get("student_id") == target),
            None
        )
        return {
            "student_id": student["_id"],
            "student_name": student.get("name"),
            "job_title": job.get("title"),
            "match_score": match_data["total_score"],
            "breakdown": match_data["breakdown"],
            "skills_matched": match_data["skills_matched"],
            "skills_missing": match_data["skills_missing"],
            "relevant_projects_count": match_data["relevant_projects_count"],
            "match_reason": cached.get("match_reason") if cached else None,
            "is_cached_match": cached is not None,
        }


def get_matching_service() -> JobMatchingService:
    return JobMatchingService()
