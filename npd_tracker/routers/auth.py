"""
Authentication router for the NPD Tracker API.

Mounts under ``/api/auth`` (prefix set in ``main.py``).

Endpoints:
    POST /login   - Authenticate with username + password, receive JWT.
    POST /refresh - Exchange a valid token for a new one (extend session).
    GET  /me      - Return the currently authenticated user's profile.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.auth import TokenResponse, UserResponse
from npd_tracker.services.auth_service import authenticate_user, get_current_user
from npd_tracker.utils.security import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


def _token_for(user: Usuario) -> str:
    return create_access_token(
        data={
            "sub": str(user.id),
            "username": user.username,
            "rol": user.rol,
            "organization_id": user.organization_id,
        }
    )


# ---------------------------------------------------------------------------
# POST /login
# ---------------------------------------------------------------------------


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Masuk",
    description=(
        "Mengautentikasi pengguna dan mengembalikan JWT akses yang berlaku "
        "selama ``JWT_EXPIRATION_MINUTES``."
    ),
    responses={
        200: {"description": "Autentikasi berhasil; token JWT disertakan."},
        401: {"description": "Kredensial salah atau akun tidak aktif."},
        422: {"description": "Isi permintaan tidak valid."},
    },
)
def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """Authenticate a user and issue a JWT access token.

    Accepts the standard OAuth2 ``application/x-www-form-urlencoded`` form so
    that the Swagger UI "Authorize" button works.

    Raises:
        HTTPException 401: If credentials are invalid or the account is inactive.
    """
    user = authenticate_user(db, form_data.username, form_data.password)

    if user is None:
        logger.warning("Failed login attempt for username='%s'", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Kredensial salah atau akun tidak aktif",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("Successful login for username='%s' rol='%s'", user.username, user.rol)
    return TokenResponse(access_token=_token_for(user))


# ---------------------------------------------------------------------------
# POST /refresh
# ---------------------------------------------------------------------------


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Perbarui token",
    description="Menerbitkan JWT baru dari token yang masih berlaku.",
    responses={
        200: {"description": "Token berhasil diperbarui."},
        401: {"description": "Token tidak valid atau kedaluwarsa."},
    },
)
def refresh_token(
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> TokenResponse:
    """Refresh an access token for the currently authenticated user."""
    logger.info("Token refreshed for username='%s'", current_user.username)
    return TokenResponse(access_token=_token_for(current_user))


# ---------------------------------------------------------------------------
# GET /me
# ---------------------------------------------------------------------------


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Profil pengguna",
    description="Profil publik pengguna yang diidentifikasi oleh JWT.",
    responses={
        200: {"description": "Profil pengguna."},
        401: {"description": "Token tidak ada, tidak valid, atau kedaluwarsa."},
    },
)
def get_me(
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> UserResponse:
    return UserResponse.model_validate(current_user)
