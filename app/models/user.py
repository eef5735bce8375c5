"""ORM model for application users (auth and RBAC)."""

from sqlalchemy import Boolean, Column, Integer, String

from app.models.base import Base
from app.models.enums import Role
from app.models.mixins import TimestampMixin


class User(TimestampMixin, Base):
    """
    User account for JWT authentication and role-based access control.

    email is stored lower-cased; role is 'USER' or 'ADMIN'; avatar holds a stored
    image reference such as 'uploads/avatars/avatar-<stamp>.webp'.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default=Role.USER.value)
    is_active = Column(Boolean, nullable=False, default=True)
    avatar = Column(String(512), nullable=True)
