# duka/models/users.py

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from duka.database import Base

ROLE_ADMIN = "admin"
ROLE_CLERK = "clerk"
ROLE_ACCOUNTANT = "accountant"

ROLES = (ROLE_ADMIN, ROLE_CLERK, ROLE_ACCOUNTANT)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)

    # Role drives every permission check in the API
    role = Column(String, nullable=False, default=ROLE_CLERK)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'clerk', 'accountant')",
            name="ck_users_role_valid",
        ),
    )
