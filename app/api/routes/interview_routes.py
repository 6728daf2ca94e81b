"""
Interview Routes

POST /interviews/start - Start a mock interview session
POST /interviews/{session_id}/answer - Answer the current question
POST /interviews/{session_id}/complete - Finish and summarise the session
GET /interviews/history - Past sessions
GET /interviews/stats - Aggregate interview statistics
GET /interviews/{session_id} - Get one session
"""

from fastapi import APIRouter, HTTPException, Depends, Query

from app.api.deps import require_valid_id
from app.core.auth import get_current_student
from app.services.interview_service import InterviewError, get_mock_interview_service
from app.services.mongo_service import get_interview_service, serialize_doc
from app.schemas.schemas import InterviewStartRequest, InterviewAnswerRequest

router = APIRouter(prefix="/interviews", tags=["Interviews"])


def get_owned_session(session_id: str, student: dict) -> dict:
    require_valid_id(session_id, "session id")
    session = get_interview_service().get_by_id(session_id)
    if not session or session.get("student_id") != student["_id"]:
        raise HTTPException(status_code=404, detail="Interview session not found")
    return session


@router.post("/start", status_code=201)
def start_interview(data: InterviewStartRequest, student: dict = Depends(get_current_student)):
    try:
        session = get_mock_interview_service().start_session(
            student,
            target_role=data.target_role,
            difficulty=data.difficulty.value,
            interview_types=[t.value for t in data.interview_types],
            questions_target=data.questions_target,
        )
    except InterviewError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "session_id": str(session["_id"]),
        "questions_target": session["questions_target"],
        "question": session["questions"][0],
    }


@router.post("/{session_id}/answer")
def answer_question(
    session_id: str,
    data: InterviewAnswerRequest,
    student: dict = Depends(get_current_student)
):
    session = get_owned_session(session_id, student)
    try:
        return get_mock_interview_service().submit_answer(session, data.answer, student.get("skills") or [])
    except InterviewError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{session_id}/complete")
async def complete_interview(session_id: str, student: dict = Depends(get_current_student)):
    session = get_owned_session(session_id, student)
    try:
        session = get_mock_interview_service().complete_session(session)
    except InterviewError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_doc(session)


@router.get("/history")
async def interview_history(
    limit: int = Query(20, ge=1, le=100),
    student: dict = Depends(get_current_student)
):
    sessions = get_interview_service().list_by_student(student["_id"], limit=limit)
    return [
        {
            "_id": str(s["_id"]),
            "target_role": s.get("target_role"),
            "difficulty": s.get("difficulty"),
            "status": s.get("status"),
            "questions_answered": s.get("current_question_index") or 0,
            "questions_target": s.get("questions_target"),
            "overall_score": (s.get("summary") or {}).get("overall_score"),
            "started_at": s.get("started_at"),
            "completed_at": s.get("completed_at"),
        }
        for s in sessions
    ]


@router.get("/stats")
async def interview_stats(student: dict = Depends(get_current_student)):
    return get_mock_interview_service().get_stats(student["_id"])


@router.get("/{session_id}")
async def get_interview(session_id: str, student: dict = Depends(get_current_student)):
    return serialize_doc(get_owned_session(session_id, student))
