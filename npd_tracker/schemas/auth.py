"""
Pydantic v2 schemas for the authentication endpoints.

Covers the login request payload, the JWT token response, and the
public user representation returned by ``GET /api/auth/me``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Payload accepted by ``POST /api/auth/login``.

    Attributes:
        username: The user's unique login name.
        password: Plain-text password (transmitted over HTTPS only).
    """

    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        description="Nama pengguna unik",
    )
    password: str = Field(
        ...,
        min_length=6,
        max_length=128,
        description="Kata sandi (hanya melalui HTTPS)",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "pptk.disdik",
                "password": "secret1234",
            }
        }
    )


class TokenResponse(BaseModel):
    """Response body returned after a successful authentication.

    Attributes:
        access_token: Signed JWT for the ``Authorization: Bearer`` header.
        token_type: Always ``"bearer"``.
    """

    access_token: str = Field(..., description="JWT akses")
    token_type: str = Field(default="bearer", description="Tipe token OAuth2")


class UserResponse(BaseModel):
    """Public representation of an authenticated user.

    ``password_hash`` is deliberately excluded.
    """

    id: int
    username: str
    email: str
    nombre_completo: str | None
    rol: str
    organization_id: int
    activo: bool

    model_config = ConfigDict(from_attributes=True)
