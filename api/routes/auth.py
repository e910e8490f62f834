"""Login, registration and session endpoints"""
import asyncpg
from fastapi import APIRouter, Depends, HTTPException, Response

from api.deps import get_current_user
from api.schemas import LoginRequest, RegisterRequest
from lib.db import get_conn
from lib.logging import get_logger
from lib.prometheus_metrics import login_attempts_total, registrations_total
from lib.security import (
    clear_session_cookie,
    create_access_token,
    hash_password,
    normalize_email,
    set_session_cookie,
    verify_password,
)
from lib.users import email_taken, fetch_children, fetch_user_by_email, user_to_json

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = get_logger(__name__)

# Status -> (error, message) for accounts that may not sign in
BLOCKED_STATUSES = {
    "PENDING": (
        "Account under review",
        "Your account is still being reviewed. Please wait for approval."
    ),
    "BANNED": (
        "Account suspended",
        "Your account has been suspended. Please contact support."
    ),
    "REJECTED": (
        "Account rejected",
        "Your registration request was rejected."
    ),
}


def login_block_reason(status: str):
    """(error, message) when a user with this status may not log in, else None"""
    return BLOCKED_STATUSES.get(status)


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Validate credentials and set the session cookie"""
    email = normalize_email(body.email)
    user = await fetch_user_by_email(conn, email)

    if not user or not verify_password(body.password, user["password_hash"]):
        login_attempts_total.labels(outcome="invalid").inc()
        raise HTTPException(status_code=401, detail="Invalid credentials")

    blocked = login_block_reason(user["status"])
    if blocked:
        error, message = blocked
        login_attempts_total.labels(outcome=user["status"].lower()).inc()
        logger.info(f"login blocked user_id={user['id']} status={user['status']}")
        raise HTTPException(status_code=403, detail={"error": error, "message": message})

    token = create_access_token(str(user["id"]), user["email"], user["role"])
    set_session_cookie(response, token)
    login_attempts_total.labels(outcome="success").inc()

    return {"user": user_to_json(user)}


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Public self-registration; the account waits in PENDING for review"""
    email = normalize_email(body.email)

    if await email_taken(conn, email):
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        row = await conn.fetchrow("""
            INSERT INTO users (
                name, email, password_hash, role, status,
                whatsapp, instagram, projected_ftds
            ) VALUES ($1, $2, $3, 'AFFILIATE', 'PENDING', $4, $5, $6)
            RETURNING id, name, email, status
        """,
            body.name, email, hash_password(body.password),
            body.whatsapp, body.instagram, body.projected_ftds
        )
    except asyncpg.UniqueViolationError:
        raise HTTPException(status_code=400, detail="Email already registered")

    registrations_total.inc()
    logger.info(f"affiliate registered user_id={row['id']}")

    return {
        "message": "Registration received. Please wait for approval.",
        "user": {
            "id": str(row["id"]),
            "name": row["name"],
            "email": row["email"],
            "status": row["status"],
        },
    }


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out"}


@router.get("/me")
async def me(
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Current user with direct sub-accounts"""
    data = user_to_json(user)
    data["children"] = await fetch_children(conn, user["id"])
    return {"user": data}
