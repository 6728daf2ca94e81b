"""
Market Data Aggregation

Pulls job-posting counts and salaries per tracked skill from the Adzuna
search API and upserts one skill_market_data document per skill.

Derived signals:
- demand_score: 0 for no jobs, 100 for >= 10000, else round(20 * log10(n))
- trend: rising / declining on a +-10% change against the previous count
- yoy_growth: percentage change against the previous count
- predicted_growth_6m: half of yoy_growth, scaled 1.2 rising / 0.8 declining
"""

import logging
import math
import time
from datetime import timedelta
from typing import List, Optional

import numpy as np
import requests

from app.core.config import get_settings
from app.services.mongo_service import SkillMarketDataService
from app.utils.dates import utcnow, ensure_aware
from app.utils.scoring import round_half_up

logger = logging.getLogger(__name__)

settings = get_settings()

ADZUNA_URL = "https://api.adzuna.com/v1/api/jobs/{country}/search/1"
ADZUNA_TIMEOUT_SECONDS = 10
RESULTS_PER_PAGE = 50
SEARCH_TERM_PAUSE_SECONDS = 0.5
STALE_AFTER = timedelta(hours=24)

TRACKED_SKILLS = [
    {"skill_name": "React", "category": "Frontend", "search_terms": ["react", "reactjs", "react.js"]},
    {"skill_name": "Angular", "category": "Frontend", "search_terms": ["angular", "angularjs"]},
    {"skill_name": "Vue.js", "category": "Frontend", "search_terms": ["vue", "vuejs", "vue.js"]},
    {"skill_name": "TypeScript", "category": "Frontend", "search_terms": ["typescript"]},
    {"skill_name": "Next.js", "category": "Frontend", "search_terms": ["nextjs", "next.js"]},
    {"skill_name": "Node.js", "category": "Backend", "search_terms": ["nodejs", "node.js", "node js"]},
    {"skill_name": "Python", "category": "Backend", "search_terms": ["python", "django", "flask"]},
    {"skill_name": "Java", "category": "Backend", "search_terms": ["java", "spring boot", "spring"]},
    {"skill_name": "Go", "category": "Backend", "search_terms": ["golang", "go programming"]},
    {"skill_name": "Rust", "category": "Backend", "search_terms": ["rust programming"]},
    {"skill_name": "AWS", "category": "Cloud", "search_terms": ["aws", "amazon web services"]},
    {"skill_name": "Docker", "category": "DevOps", "search_terms": ["docker", "containerization"]},
    {"skill_name": "Kubernetes", "category": "DevOps", "search_terms": ["kubernetes", "k8s"]},
    {"skill_name": "CI/CD", "category": "DevOps", "search_terms": ["ci/cd", "jenkins", "github actions"]},
    {"skill_name": "Machine Learning", "category": "AI/ML", "search_terms": ["machine learning", "ml engineer"]},
    {"skill_name": "Data Science", "category": "Data", "search_terms": ["data science", "data scientist"]},
    {"skill_name": "MongoDB", "category": "Data", "search_terms": ["mongodb", "nosql"]},
    {"skill_name": "PostgreSQL", "category": "Data", "search_terms": ["postgresql", "postgres"]},
    {"skill_name": "React Native", "category": "Mobile", "search_terms": ["react native"]},
    {"skill_name": "Flutter", "category": "Mobile", "search_terms": ["flutter", "dart"]},
]


# ============================================================
# PURE CALCULATIONS
# ============================================================

def calculate_average_salary(jobs: List[dict]) -> int:
    """Mean of (salary_min + salary_max) / 2 over listings with both bounds."""
    midpoints = [
        (job["salary_min"] + job["salary_max"]) / 2
        for job in jobs or []
        if job.get("salary_min") and job.get("salary_max")
    ]
    if not midpoints:
        return 0
    return int(round_half_up(float(np.mean(midpoints))))


def calculate_demand_score(job_count: int) -> int:
    """Logarithmic scale: 10 jobs -> 20, 100 -> 40, 1000 -> 60, 10000+ -> 100."""
    if job_count <= 0:
        return 0
    if job_count >= 10000:
        return 100
    return int(min(100, max(0, round_half_up(20 * math.log10(job_count)))))


def determine_trend(current_job_count: int, previous_job_count: int) -> str:
    if not previous_job_count:
        return "stable"
    change_percent = (current_job_count - previous_job_count) / previous_job_count * 100
    if change_percent >= 10:
        return "rising"
    if change_percent <= -10:
        return "declining"
    return "stable"


def calculate_yoy_growth(current_job_count: int, previous_job_count: int) -> int:
    if not previous_job_count:
        return 0
    return int(round_half_up((current_job_count - previous_job_count) / previous_job_count * 100))


def predict_6_month_growth(yoy_growth: int, trend: str) -> int:
    projection = round_half_up(yoy_growth / 2)
    if trend == "rising":
        projection = round_half_up(projection * 1.2)
    elif trend == "declining":
        projection = round_half_up(projection * 0.8)
    return int(projection)


# ============================================================
# ADZUNA
# ============================================================

def fetch_adzuna_data(search_query: str) -> Optional[dict]:
    """
    Returns {"job_count", "avg_salary"} for one search, or None when
    credentials are missing or the request fails.
    """
    if not settings.adzuna_app_id or not settings.adzuna_api_key:
        logger.warning("Adzuna API credentials not found, skipping market fetch")
        return None

    try:
        response = requests.get(
            ADZUNA_URL.format(country=settings.adzuna_country),
            params={
                "app_id": settings.adzuna_app_id,
                "app_key": settings.adzuna_api_key,
                "what": search_query,
                "results_per_page": RESULTS_PER_PAGE,
            },
            timeout=ADZUNA_TIMEOUT_SECONDS
        )
    except requests.Timeout:
        logger.error(f"Adzuna API timeout for '{search_query}'")
        return None
    except requests.RequestException as e:
        logger.error(f"Network error fetching Adzuna data for '{search_query}': {e}")
        return None

    if not response.ok:
        logger.error(f"Adzuna API error for '{search_query}': {response.status_code}")
        return None

    data = response.json()
    return {
        "job_count": data.get("count") or 0,
        "avg_salary": calculate_average_salary(data.get("results") or []),
    }


# ============================================================
# AGGREGATION
# ============================================================

class MarketDataAggregator:
    def __init__(self, market_service: SkillMarketDataService = None, fetcher=fetch_adzuna_data,
                 pause_seconds: float = SEARCH_TERM_PAUSE_SECONDS):
        self.market_service = market_service or SkillMarketDataService()
        self.fetcher = fetcher
        self.pause_seconds = pause_seconds

    def _fetch_first_available(self, search_terms: List[str]) -> Optional[dict]:
        """Try search terms in order; stop at the first with job_count > 0."""
        data = None
        for index, term in enumerate(search_terms):
            data = self.fetcher(term)
            if data and data["job_count"] > 0:
                return data
            if self.pause_seconds and index < len(search_terms) - 1:
                time.sleep(self.pause_seconds)
        return data

    def aggregate_market_data(self) -> dict:
        """Refresh every tracked skill. Returns success/failed/skipped counts and errors."""
        logger.info(f"Starting market data aggregation for {len(TRACKED_SKILLS)} skills")
        results = {"success": 0, "failed": 0, "skipped": 0, "errors": []}

        for skill in TRACKED_SKILLS:
            name = skill["skill_name"]
            try:
                data = self._fetch_first_available(skill["search_terms"])
                if not data:
                    logger.info(f"No data available for {name}, skipping")
                    results["skipped"] += 1
                    continue

                existing = self.market_service.get_by_name(name)
                previous_count = existing.get("job_count", 0) if existing else 0

                job_count = data["job_count"]
                trend = determine_trend(job_count, previous_count)
                yoy_growth = calculate_yoy_growth(job_count, previous_count)

                self.market_service.upsert(name, {
                    "category": skill["category"],
                    "demand_score": calculate_demand_score(job_count),
                    "job_count": job_count,
                    "avg_salary": data["avg_salary"],
                    "trend": trend,
                    "yoy_growth": yoy_growth,
                    "predicted_growth_6m": predict_6_month_growth(yoy_growth, trend),
                    "last_updated": utcnow(),
                })
                logger.info(f"{name}: {job_count} jobs, {trend} trend")
                results["success"] += 1
            except Exception as e:
                logger.error(f"Error processing {name}: {e}")
                results["failed"] += 1
                results["errors"].append({"skill": name, "error": str(e)})

        logger.info(
            f"Market data aggregation complete: {results['success']} success, "
            f"{results['skipped']} skipped, {results['failed']} failed"
        )
        return results

    def get_aggregation_stats(self) -> Optional[dict]:
        try:
            total = self.market_service.count()
            most_recent = self.market_service.most_recent()
        except Exception as e:
            logger.error(f"Error getting aggregation stats: {e}")
            return None

        last_updated = ensure_aware(most_recent["last_updated"]) if most_recent and most_recent.get("last_updated") else None
        return {
            "total_skills": total,
            "last_updated": last_updated,
            "is_stale": last_updated is None or utcnow() - last_updated > STALE_AFTER,
        }
