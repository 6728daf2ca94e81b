"""
Shared route helpers - id validation and account signup/login flows
used by the student, recruiter and admin routers.
"""

from typing import Any

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from app.core.auth import hash_password, verify_password, create_access_token
from app.services.mongo_service import AccountService, is_valid_id, serialize_doc


def require_valid_id(value: Any, label: str = "id") -> str:
    """400 for malformed ObjectIds so they never reach the database layer."""
    if not is_valid_id(value):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")
    return value


def auth_response(account: dict, role: str) -> dict:
    account = {k: v for k, v in account.items() if k != "password_hash"}
    return {
        "token": create_access_token(str(account["_id"]), role),
        "token_type": "bearer",
        "role": role,
        "user": serialize_doc(account),
    }


def signup_account(service: AccountService, role: str, data: dict) -> dict:
    """Create an account and return the token response. 400 on duplicate email."""
    if service.email_exists(data["email"]):
        raise HTTPException(status_code=400, detail="Email already registered")

    password = data.pop("password")
    data["password_hash"] = hash_password(password)
    try:
        account_id = service.create(data)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")

    account = service.get_by_id(account_id)
    return auth_response(account, role)


def login_account(service: AccountService, role: str, email: str, password: str) -> dict:
    account = service.get_by_email(email, include_password=True)
    if not account or not verify_password(password, account.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    service.touch_login(account["_id"])
    return auth_response(account, role)
