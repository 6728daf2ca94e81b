"""
Market Routes (public)

GET /market/skills - Tracked skills by demand, optional category filter
GET /market/trends - Rising and declining skills
"""

from typing import Optional

from fastapi import APIRouter, Query

from app.services.mongo_service import get_market_data_service, serialize_docs

router = APIRouter(prefix="/market", tags=["Market"])


@router.get("/skills")
async def list_skills(
    category: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100)
):
    skills = get_market_data_service().list_skills(category=category, limit=limit)
    return {"count": len(skills), "skills": serialize_docs(skills)}


@router.get("/trends")
async def skill_trends(limit: int = Query(10, ge=1, le=50)):
    service = get_market_data_service()
    return {
        "rising": serialize_docs(service.list_by_trend("rising", limit)),
        "declining": serialize_docs(service.list_by_trend("declining", limit)),
    }
