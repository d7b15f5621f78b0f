"""
Authentication business logic for the NPD Tracker.

Provides:
- ``authenticate_user``: credential verification against the DB.
- ``get_current_user``: FastAPI dependency that extracts and validates
  the Bearer JWT from the ``Authorization`` header.
- ``require_role``: dependency factory restricting an endpoint to roles.
- ``require_permission``: dependency factory checking an ``action:resource``
  capability against the role/permission table.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.exceptions import PermissionDenied
from npd_tracker.models.usuario import Usuario
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import has_permission
from npd_tracker.utils.security import verify_password, verify_token

logger = logging.getLogger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ---------------------------------------------------------------------------
# Core authentication function
# ---------------------------------------------------------------------------


def authenticate_user(db: Session, username: str, password: str) -> Usuario | None:
    """Verify username/password credentials against the database.

    Returns ``None`` (instead of raising) so that callers can control the
    HTTP error response.

    Args:
        db: An active SQLAlchemy session.
        username: The login name submitted by the client.
        password: The plain-text password submitted by the client.

    Returns:
        The ``Usuario`` on success, or ``None`` for an unknown user, an
        inactive account or a wrong password.
    """
    user: Usuario | None = (
        db.query(Usuario)
        .filter(Usuario.username == username, Usuario.activo.is_(True))
        .first()
    )

    if user is None:
        logger.debug("authenticate_user: unknown or inactive user '%s'", username)
        return None

    if not verify_password(password, user.password_hash):
        logger.debug("authenticate_user: wrong password for user '%s'", username)
        return None

    # Last-access timestamp is best effort
    try:
        user.ultimo_acceso = utcnow()
        db.commit()
    except Exception:  # pragma: no cover
        db.rollback()
        logger.warning("Could not update ultimo_acceso for user '%s'", username)

    return user


# ---------------------------------------------------------------------------
# FastAPI dependency: current authenticated user
# ---------------------------------------------------------------------------


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> Usuario:
    """Resolve the caller's identity from a JWT.

    Raises:
        HTTPException 401: If the token is missing, invalid or expired, or
            the referenced user no longer exists or has been deactivated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Kredensial tidak dapat divalidasi",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = verify_token(token)
    except ValueError:
        raise credentials_exception

    # ``sub`` carries the user's primary key as a string
    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception

    try:
        user_id = int(user_id_str)
    except (TypeError, ValueError):
        raise credentials_exception

    user: Usuario | None = (
        db.query(Usuario)
        .filter(Usuario.id == user_id, Usuario.activo.is_(True))
        .first()
    )

    if user is None:
        raise credentials_exception

    return user


# ---------------------------------------------------------------------------
# Access enforcement dependency factories
# ---------------------------------------------------------------------------


def require_role(*roles: str):
    """Return a FastAPI dependency that restricts access to the given roles.

    .. code-block:: python

        @router.get("/admin-only")
        def admin_endpoint(
            current_user: Usuario = Depends(require_role("admin")),
        ):
            ...

    Raises:
        HTTPException 403: If the authenticated user's role is not allowed.
    """
    allowed = frozenset(roles)

    def _check_role(
        current_user: Annotated[Usuario, Depends(get_current_user)],
    ) -> Usuario:
        if current_user.rol not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"Akses ditolak. Diperlukan salah satu peran: "
                    f"{sorted(allowed)}"
                ),
            )
        return current_user

    return _check_role


def require_permission(action: str, resource: str):
    """Return a FastAPI dependency that requires the ``action:resource`` capability.

    The denial is raised as ``PermissionDenied`` so that it is rendered by
    the same domain error handler as service-level checks.
    """

    def _check_permission(
        current_user: Annotated[Usuario, Depends(get_current_user)],
    ) -> Usuario:
        if not has_permission(current_user.rol, action, resource):
            logger.warning(
                "Permission denied: user=%d rol=%s %s:%s",
                current_user.id, current_user.rol, action, resource,
            )
            raise PermissionDenied(current_user.rol, action, resource)
        return current_user

    return _check_permission
