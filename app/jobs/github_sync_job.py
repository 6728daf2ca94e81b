"""
GitHub Sync Job - fetches a student's GitHub data and merges derived fields
into the student document.

Steps (sequential):
1. Fetch the user profile (hard failure aborts the sync)
2. Fetch up to 300 repositories
3. Fetch languages for the first 20 repositories (the rest get {})
4. Derive top languages, top repositories, activity score, skills
5. Merge into the student record, optionally importing repos as projects

sync_github_data() never raises; it returns {"success": False, "error": ...}.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, List

from bson import ObjectId

from app.services.github_client import GitHubClient, GitHubAPIError
from app.services.mongo_service import StudentService
from app.utils.dates import utcnow, parse_datetime
from app.utils.scoring import as_list
from app.utils.token_crypto import decrypt_token, TokenCryptoError

logger = logging.getLogger(__name__)

LANGUAGE_FETCH_LIMIT = 20
TOP_LANGUAGES = 10
TOP_REPOS = 10
MAX_PROJECT_TAGS = 10
MAX_EVIDENCE_URLS = 5
SKILLS_ADDED_TO_PROFILE = 20


# ============================================================
# PURE DERIVATIONS
# ============================================================

def analyze_languages(repos: List[dict]) -> List[dict]:
    """
    Aggregate language bytes across repos.
    Returns the top 10 as [{"name", "count", "percentage"}], largest first.
    Percentages are truncated to one decimal so they never sum past 100.
    """
    totals = {}
    for repo in repos:
        for language, size in (repo.get("languages") or {}).items():
            totals[language] = totals.get(language, 0) + int(size or 0)

    total_bytes = sum(totals.values())
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:TOP_LANGUAGES]
    return [
        {
            "name": name,
            "count": count,
            "percentage": (count * 1000 // total_bytes) / 10 if total_bytes > 0 else 0,
        }
        for name, count in ranked
    ]


def get_top_repositories(repos: List[dict]) -> List[dict]:
    """Top 10 non-fork repositories by stars."""
    own = [repo for repo in repos if not repo.get("fork")]
    own.sort(key=lambda repo: repo.get("stargazers_count") or 0, reverse=True)
    return [
        {
            "name": repo.get("name"),
            "full_name": repo.get("full_name"),
            "description": repo.get("description"),
            "language": repo.get("language"),
            "stars": repo.get("stargazers_count") or 0,
            "forks": repo.get("forks_count") or 0,
            "url": repo.get("html_url"),
            "last_updated": repo.get("updated_at"),
            "topics": repo.get("topics") or [],
        }
        for repo in own[:TOP_REPOS]
    ]


def calculate_activity_score(user_data: dict, repos: List[dict], now=None) -> int:
    """
    Five sub-scores, each capped at 20:
    repo count, stars received, repos updated in the last 30 days,
    followers, non-fork ratio.
    """
    now = now or utcnow()
    repo_count = len(repos)

    repo_score = min(repo_count / 20 * 20, 20)

    total_stars = sum(repo.get("stargazers_count") or 0 for repo in repos)
    stars_score = min(total_stars / 50 * 20, 20)

    cutoff = now - timedelta(days=30)
    recent = [
        repo for repo in repos
        if (parse_datetime(repo.get("updated_at")) or cutoff) > cutoff
    ]
    recent_score = min(len(recent) / 5 * 20, 20)

    followers_score = min((user_data.get("followers") or 0) / 50 * 20, 20)

    non_fork = [repo for repo in repos if not repo.get("fork")]
    quality_score = len(non_fork) / repo_count * 20 if repo_count else 0

    total = repo_score + stars_score + recent_score + followers_score + quality_score
    return int(min(max(total + 0.5, 0), 100))


def _topic_to_skill(topic: str) -> str:
    return " ".join(word.capitalize() for word in topic.replace("-", " ").split(" "))


def extract_skills_from_repos(repos: List[dict]) -> List[dict]:
    """
    Skills from primary language, topics and detailed language keys.
    confidence = min(0.7 + count / total_repos * 0.25, 0.95)
    """
    counts = {}
    evidence = {}

    def add(skill: str, url: str, unique_evidence: bool = False):
        counts[skill] = counts.get(skill, 0) + 1
        urls = evidence.setdefault(skill, [])
        if not (unique_evidence and url in urls):
            urls.append(url)

    for repo in repos:
        url = repo.get("html_url")
        if repo.get("language"):
            add(repo["language"], url)
        for topic in repo.get("topics") or []:
            add(_topic_to_skill(topic), url)
        for language in (repo.get("languages") or {}).keys():
            add(language, url, unique_evidence=True)

    total_repos = len(repos)
    skills = [
        {
            "name": name,
            "source": "github",
            "confidence": min(0.7 + count / total_repos * 0.25, 0.95),
            "evidence": evidence[name][:MAX_EVIDENCE_URLS],
        }
        for name, count in counts.items()
    ]
    skills.sort(key=lambda skill: skill["confidence"], reverse=True)
    return skills


def convert_repos_to_projects(repos: List[dict]) -> List[dict]:
    """Public repos as pending project entries, newest first."""
    projects = []
    for repo in repos:
        if repo.get("private"):
            continue
        tags = ([repo["language"]] if repo.get("language") else []) + list(repo.get("topics") or [])
        projects.append({
            "title": repo.get("name"),
            "github_link": repo.get("html_url"),
            "description": repo.get("description") or f"GitHub repository: {repo.get('name')}",
            "tags": tags[:MAX_PROJECT_TAGS],
            "status": "pending",
            "verified": False,
            "is_favorite": False,
            "submitted_at": parse_datetime(repo.get("created_at")),
            "github_data": {
                "stars": repo.get("stargazers_count") or 0,
                "forks": repo.get("forks_count") or 0,
                "watchers": repo.get("watchers_count") or 0,
                "open_issues": repo.get("open_issues_count") or 0,
                "is_fork": bool(repo.get("fork")),
                "last_updated": repo.get("updated_at"),
                "created_at": repo.get("created_at"),
                "homepage": repo.get("homepage"),
                "size": repo.get("size") or 0,
            },
        })

    projects.sort(
        key=lambda p: p["submitted_at"].timestamp() if p["submitted_at"] else 0,
        reverse=True
    )
    return projects


def merge_validated_skills(existing: List[dict], extracted: List[dict]) -> List[dict]:
    """Keep existing skills, add extracted ones with new (case-insensitive) names."""
    known = {str(skill.get("name", "")).lower() for skill in existing if isinstance(skill, dict)}
    return list(existing) + [s for s in extracted if s["name"].lower() not in known]


def merge_projects(existing: List[dict], imported: List[dict]) -> List[dict]:
    """Append imported projects whose GitHub link is not already present (case-insensitive)."""
    known = {
        str(project.get("github_link")).lower()
        for project in existing if isinstance(project, dict) and project.get("github_link")
    }
    merged = list(existing)
    for project in imported:
        link = project.get("github_link")
        if not link or link.lower() in known:
            continue
        known.add(link.lower())
        merged.append({"_id": ObjectId(), **project})
    return merged


def merge_skill_names(skills: List[str], top_languages: List[dict], extracted: List[dict]) -> List[str]:
    merged = list(skills)
    for name in [lang["name"] for lang in top_languages] + [s["name"] for s in extracted[:SKILLS_ADDED_TO_PROFILE]]:
        if name not in merged:
            merged.append(name)
    return merged


# ============================================================
# SYNC
# ============================================================

def sync_github_data(
    student_id: Any,
    sync_projects: bool = True,
    student_service: StudentService = None,
    client_factory: Callable[[str], GitHubClient] = GitHubClient
) -> dict:
    """Sync GitHub data for one student. Never raises."""
    try:
        logger.info(f"Starting GitHub sync for student: {student_id}")
        student_service = student_service or StudentService()

        student = student_service.get_by_id(student_id)
        if not student:
            return {"success": False, "error": "Student not found"}

        github_auth = student.get("github_auth") or {}
        if not github_auth.get("encrypted_access_token"):
            return {"success": False, "error": "No GitHub OAuth connection found"}

        try:
            access_token = decrypt_token(github_auth["encrypted_access_token"])
        except TokenCryptoError as e:
            return {"success": False, "error": str(e)}

        username = github_auth.get("username")
        client = client_factory(access_token)

        try:
            user_data = client.get_user(username)
        except GitHubAPIError as e:
            return {"success": False, "error": str(e)}

        repos = client.list_repositories(username)
        all_repos = []
        for index, repo in enumerate(repos):
            languages = {}
            if index < LANGUAGE_FETCH_LIMIT:
                owner = (repo.get("owner") or {}).get("login") or username
                languages = client.get_repository_languages(owner, repo.get("name"))
            all_repos.append({**repo, "languages": languages})

        top_languages = analyze_languages(all_repos)
        top_repos = get_top_repositories(all_repos)
        activity_score = calculate_activity_score(user_data, all_repos)
        skills = extract_skills_from_repos(all_repos)
        now = utcnow()

        student["github_stats"] = {
            "username": user_data.get("login"),
            "avatar_url": user_data.get("avatar_url"),
            "bio": user_data.get("bio"),
            "total_repos": user_data.get("public_repos") or 0,
            "followers": user_data.get("followers") or 0,
            "following": user_data.get("following") or 0,
            "public_gists": user_data.get("public_gists") or 0,
            "created_at": user_data.get("created_at"),
            "top_languages": top_languages,
            "top_repos": top_repos,
            "activity_score": activity_score,
            "last_synced_at": now,
            "fetched_at": now,
        }

        # Profile fields only when not set manually
        if not student.get("avatar_url") or student.get("avatar_url") == github_auth.get("avatar_url"):
            student["avatar_url"] = user_data.get("avatar_url")
        if not student.get("summary") and user_data.get("bio"):
            student["summary"] = user_data["bio"]
        if not student.get("location") and user_data.get("location"):
            student["location"] = user_data["location"]
        if not student.get("portfolio_url") and user_data.get("blog"):
            student["portfolio_url"] = user_data["blog"]

        github_auth["last_verified_at"] = now
        github_auth["avatar_url"] = user_data.get("avatar_url")
        student["github_auth"] = github_auth

        student["validated_skills"] = merge_validated_skills(as_list(student.get("validated_skills")), skills)
        student["skills"] = merge_skill_names(as_list(student.get("skills")), top_languages, skills)

        added_projects = 0
        if sync_projects:
            existing = as_list(student.get("projects"))
            student["projects"] = merge_projects(existing, convert_repos_to_projects(all_repos))
            added_projects = len(student["projects"]) - len(existing)

        student_service.save(student)

        logger.info(
            f"GitHub sync completed for {username}: {len(all_repos)} repos, "
            f"{len(top_languages)} languages, {len(skills)} skills, "
            f"activity {activity_score}/100, {added_projects} new projects"
        )
        return {
            "success": True,
            "username": username,
            "stats": {
                "repositories": len(all_repos),
                "languages": len(top_languages),
                "top_repos": len(top_repos),
                "skills": len(skills),
                "activity_score": activity_score,
                "projects": len(as_list(student.get("projects"))),
                "new_projects": added_projects,
            },
        }
    except Exception as e:
        logger.exception(f"GitHub sync failed for student {student_id}: {e}")
        return {"success": False, "error": str(e)}
