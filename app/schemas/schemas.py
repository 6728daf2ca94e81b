"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
Stored documents are returned as serialized dicts, so most schemas here
describe what the API accepts.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    recruiter = "recruiter"
    admin = "admin"


class JobType(str, Enum):
    full_time = "full-time"
    part_time = "part-time"
    internship = "internship"
    contract = "contract"


class JobStatus(str, Enum):
    draft = "draft"
    active = "active"
    closed = "closed"
    expired = "expired"


class VerifiableItem(str, Enum):
    project = "project"
    certification = "certification"
    event = "event"


class VerificationDecision(str, Enum):
    verified = "verified"
    rejected = "rejected"


class InterviewType(str, Enum):
    technical = "technical"
    behavioral = "behavioral"
    project = "project"


class InterviewDifficulty(str, Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class StudentSignup(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    college: Optional[str] = None
    branch: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    graduation_year: Optional[int] = Field(None, ge=2000, le=2100)

class RecruiterSignup(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    company: str = Field(..., min_length=1, max_length=200)
    role: Optional[str] = None
    phone: Optional[str] = None

class AdminSignup(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    signup_code: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    role: UserRole
    user: Dict[str, Any]


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    college: Optional[str] = None
    branch: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    graduation_year: Optional[int] = Field(None, ge=2000, le=2100)
    phone: Optional[str] = None
    location: Optional[str] = None
    summary: Optional[str] = None
    avatar_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    skills: Optional[List[str]] = None
    skill_radar: Optional[Dict[str, float]] = None

    @field_validator("skills")
    @classmethod
    def clean_skills(cls, value):
        if value is None:
            return value
        cleaned = []
        for skill in value:
            skill = skill.strip()
            if skill and skill not in cleaned:
                cleaned.append(skill)
        return cleaned

class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    github_link: Optional[str] = None
    live_link: Optional[str] = None
    tags: List[str] = []

class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    github_link: Optional[str] = None
    live_link: Optional[str] = None
    tags: Optional[List[str]] = None

class FavoriteUpdate(BaseModel):
    is_favorite: bool

class CertificationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    provider: Optional[str] = None
    file_link: Optional[str] = None
    issued_date: Optional[datetime] = None

class CertificationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    provider: Optional[str] = None
    file_link: Optional[str] = None
    issued_date: Optional[datetime] = None

class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    organizer: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    certificate_link: Optional[str] = None

class CodingLogCreate(BaseModel):
    date: Optional[datetime] = None
    platform: str = Field(..., min_length=1)
    activity: Optional[str] = None
    minutes_spent: int = Field(0, ge=0)
    problems_solved: int = Field(0, ge=0)

class CodingProfilesUpdate(BaseModel):
    leetcode: Optional[str] = None

class GitHubConnectRequest(BaseModel):
    access_token: str = Field(..., min_length=1)
    username: Optional[str] = None

class GitHubSyncRequest(BaseModel):
    sync_projects: bool = True


# ============================================================
# RECRUITER SCHEMAS
# ============================================================

class RecruiterPreferences(BaseModel):
    roles: List[str] = []
    min_score: int = Field(0, ge=0, le=100)
    skills: List[str] = []

class RecruiterProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    company: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    preferences: Optional[RecruiterPreferences] = None


# ============================================================
# JOB SCHEMAS
# ============================================================

class JobCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    company: Optional[str] = None
    location: str = Field(..., min_length=1)
    job_type: JobType = JobType.full_time
    experience: Optional[str] = None
    salary_range: Optional[str] = None
    description: Optional[str] = None
    responsibilities: List[str] = []
    qualifications: List[str] = []
    required_skills: List[str] = []
    preferred_skills: List[str] = []
    min_readiness_score: int = Field(0, ge=0, le=100)
    min_cgpa: float = Field(0, ge=0, le=10)
    min_projects: int = Field(0, ge=0)
    expires_at: Optional[datetime] = None
    generate_description: bool = False

class JobUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    company: Optional[str] = None
    location: Optional[str] = None
    job_type: Optional[JobType] = None
    experience: Optional[str] = None
    salary_range: Optional[str] = None
    description: Optional[str] = None
    responsibilities: Optional[List[str]] = None
    qualifications: Optional[List[str]] = None
    required_skills: Optional[List[str]] = None
    preferred_skills: Optional[List[str]] = None
    min_readiness_score: Optional[int] = Field(None, ge=0, le=100)
    min_cgpa: Optional[float] = Field(None, ge=0, le=10)
    min_projects: Optional[int] = Field(None, ge=0)
    expires_at: Optional[datetime] = None
    status: Optional[JobStatus] = None


# ============================================================
# ADMIN SCHEMAS
# ============================================================

class VerifyRequest(BaseModel):
    student_id: str
    item_type: VerifiableItem
    item_id: str
    status: VerificationDecision
    feedback: Optional[str] = None


# ============================================================
# INTERVIEW SCHEMAS
# ============================================================

class InterviewStartRequest(BaseModel):
    target_role: str = ""
    difficulty: InterviewDifficulty = InterviewDifficulty.intermediate
    interview_types: List[InterviewType] = [
        InterviewType.technical, InterviewType.behavioral, InterviewType.project
    ]
    # Clamped to 3-15 by the interview service
    questions_target: int = 5

class InterviewAnswerRequest(BaseModel):
    answer: str = Field(..., min_length=1)


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
