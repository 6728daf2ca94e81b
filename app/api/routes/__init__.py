"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.student_routes import router as student_router
from app.api.routes.recruiter_routes import router as recruiter_router
from app.api.routes.job_routes import router as job_router
from app.api.routes.admin_routes import router as admin_router
from app.api.routes.interview_routes import router as interview_router
from app.api.routes.notification_routes import router as notification_router
from app.api.routes.market_routes import router as market_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(student_router)
api_router.include_router(recruiter_router)
api_router.include_router(job_router)
api_router.include_router(admin_router)
api_router.include_router(interview_router)
api_router.include_router(notification_router)
api_router.include_router(market_router)
