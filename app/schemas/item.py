"""Schemas for inventory items: response model and multipart form fields."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class ItemPublic(BaseModel):
    """Item as returned to clients."""

    id: int
    name: str
    description: str | None = None
    price: float
    quantity: int
    image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def _blank_to_none(v: object) -> object:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ItemCreateForm(BaseModel):
    """Multipart form fields for creating an item."""

    name: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price: float = Field(default=0.0, ge=0)
    quantity: int = Field(default=0, ge=0)

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("price", "quantity", mode="before")
    @classmethod
    def blank_number(cls, v: object) -> object:
        v = _blank_to_none(v)
        return 0 if v is None else v


class ItemUpdateForm(BaseModel):
    """Multipart form fields for updating an item; omitted fields keep their value."""

    name: str | None = Field(default=None, min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price: float | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("price", "quantity", mode="before")
    @classmethod
    def blank_number(cls, v: object) -> object:
        return _blank_to_none(v)
