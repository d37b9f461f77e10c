# duka/core/auth.py

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from duka.database import get_db
from duka.models.users import User, ROLE_ADMIN, ROLE_CLERK, ROLE_ACCOUNTANT
from duka.core.exceptions import Forbidden, Unauthorized
from duka.core.jwt import decode_access_token
from duka.core.oauth2 import bearer_scheme

# Who may do what
STOCK_ROLES = (ROLE_ADMIN, ROLE_CLERK)
SALES_ROLES = (ROLE_ADMIN, ROLE_CLERK)
RETURN_ROLES = (ROLE_ADMIN, ROLE_CLERK)
APPROVAL_ROLES = (ROLE_ADMIN, ROLE_ACCOUNTANT)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
):
    if credentials is None:
        raise Unauthorized("Not authenticated")

    user_id = decode_access_token(credentials.credentials)

    if user_id is None:
        raise Unauthorized("Invalid or expired token")

    # Role comes from the database, not the token
    user = db.query(User).filter(User.id == user_id).first()

    if user is None or not user.is_active:
        raise Unauthorized("User not found")

    return user


def ensure_role(user: User, roles: tuple[str, ...]):
    if user.role not in roles:
        raise Forbidden(
            "Insufficient permissions",
            role=user.role,
            required=list(roles),
        )


def require_roles(*roles: str):
    """Dependency factory: the current user must hold one of ``roles``."""

    def checker(current_user: User = Depends(get_current_user)):
        ensure_role(current_user, roles)
        return current_user

    return checker
