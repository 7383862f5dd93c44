"""Authentication route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.routes import limiter, AUTH_RATE_LIMIT
from teamtango.api.auth_dependencies import client_ip, get_current_user, require_policy
from teamtango.database.db import get_db_session
from teamtango.models.schemas import (
    AuthResponse,
    LoginRequest,
    PermissionCheckResponse,
    RegisterRequest,
    UserResponse,
    UserUpdate,
)
from teamtango.services import permission_service, user_service
from teamtango.services.errors import DomainError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/auth/register", response_model=UserResponse, status_code=201)
@limiter.limit(AUTH_RATE_LIMIT)
async def register(
    request: Request, payload: RegisterRequest, session: AsyncSession = Depends(get_db_session)
):
    """Register a player or venue owner account."""
    try:
        return await user_service.register(
            session,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            phone_number=payload.phone_number,
            user_type=payload.user_type,
            gender=payload.gender,
            address=payload.address,
        )
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error registering user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error registering user")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def login(request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)):
    """Exchange email and password for a bearer token."""
    try:
        return await user_service.login(session, payload.email, payload.password, client_ip(request))
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error during login: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error during login")


@router.get("/api/auth/profile", response_model=UserResponse)
async def get_profile(user: dict = Depends(get_current_user)):
    """Get the authenticated user's profile."""
    return user


@router.put("/api/auth/profile", response_model=UserResponse)
async def update_profile(
    payload: UserUpdate,
    user: dict = Depends(require_policy("users", "update")),
    session: AsyncSession = Depends(get_db_session),
):
    """Update the authenticated user's profile."""
    return await user_service.update_user(
        session, user["id"], payload.model_dump(exclude_unset=True), actor_id=user["id"]
    )


@router.get("/api/auth/permissions/{table_name}/{action}", response_model=PermissionCheckResponse)
async def check_permission(
    table_name: str,
    action: str,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Whether the caller's role may perform an action on a table."""
    allowed = await permission_service.has_permission(session, user["role_id"], table_name, action)
    return {
        "table_name": table_name,
        "action": action,
        "role_name": user.get("role_name"),
        "has_permission": allowed,
    }
