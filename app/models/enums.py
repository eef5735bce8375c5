"""Enumerations shared by models and schemas."""

import enum


class Role(str, enum.Enum):
    """Permission tier embedded in tokens and re-checked per operation."""

    USER = "USER"
    ADMIN = "ADMIN"
