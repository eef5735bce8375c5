"""Item endpoints: list/read for any signed-in user, create with optional image, admin edits."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import FormData, UploadFile

from app.api.deps import AdminIdentity, CurrentIdentity
from app.api.errors import validation_failed_from
from app.core.database import get_db
from app.schemas.envelope import ApiResponse, ok
from app.schemas.item import ItemCreateForm, ItemPublic, ItemUpdateForm
from app.services import items as item_service
from app.services.items import ImageUpload
from app.services.uploads import ImageStore, get_image_store

router = APIRouter()

DbSession = Annotated[Session, Depends(get_db)]
Images = Annotated[ImageStore, Depends(get_image_store)]
ItemId = Annotated[int, Path(ge=1, description="Item id")]

IMAGE_FIELD = "image"


def _parse_fields(form: FormData, schema: type[BaseModel]) -> dict[str, Any]:
    """Validate the non-file form fields; only fields that were sent are returned."""
    raw = {
        key: value
        for key, value in form.items()
        if key != IMAGE_FIELD and isinstance(value, str)
    }
    try:
        parsed = schema.model_validate(raw)
    except ValidationError as e:
        raise validation_failed_from(e) from e
    return parsed.model_dump(exclude_unset=True)


def _image_from(form: FormData) -> ImageUpload | None:
    upload = form.get(IMAGE_FIELD)
    # Browsers send an empty part when no file was chosen
    if not isinstance(upload, UploadFile) or not upload.filename:
        return None
    return ImageUpload(content_type=upload.content_type, stream=upload.file, filename=upload.filename)


@router.get("", response_model=ApiResponse[list[ItemPublic]], response_model_exclude_unset=True)
def list_items(_identity: CurrentIdentity, db: DbSession) -> dict[str, object]:
    """All items, newest first."""
    return ok([ItemPublic.model_validate(i) for i in item_service.list_items(db)])


@router.get("/{item_id}", response_model=ApiResponse[ItemPublic], response_model_exclude_unset=True)
def get_item(item_id: ItemId, _identity: CurrentIdentity, db: DbSession) -> dict[str, object]:
    return ok(ItemPublic.model_validate(item_service.get_item(db, item_id)))


@router.post(
    "",
    response_model=ApiResponse[ItemPublic],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_item(
    request: Request,
    _identity: CurrentIdentity,
    db: DbSession,
    images: Images,
) -> dict[str, object]:
    """
    Create an item from `multipart/form-data` fields name, description, price, quantity,
    plus an optional `image` file.
    """
    images.check_content_length(request.headers.get("content-length"))
    async with request.form() as form:
        fields = _parse_fields(form, ItemCreateForm)
        item = await run_in_threadpool(
            item_service.create_item, db, fields, images, _image_from(form)
        )
    return ok(ItemPublic.model_validate(item))


@router.put("/{item_id}", response_model=ApiResponse[ItemPublic], response_model_exclude_unset=True)
async def update_item(
    item_id: ItemId,
    request: Request,
    _admin: AdminIdentity,
    db: DbSession,
    images: Images,
) -> dict[str, object]:
    """Update any subset of the item fields; a new `image` replaces the old file (admin only)."""
    images.check_content_length(request.headers.get("content-length"))
    async with request.form() as form:
        fields = _parse_fields(form, ItemUpdateForm)
        item = await run_in_threadpool(
            item_service.update_item, db, item_id, fields, images, _image_from(form)
        )
    return ok(ItemPublic.model_validate(item))


@router.delete("/{item_id}", response_model=ApiResponse[dict], response_model_exclude_unset=True)
def delete_item(
    item_id: ItemId,
    _admin: AdminIdentity,
    db: DbSession,
    images: Images,
) -> dict[str, object]:
    """Delete an item (admin only). Deleting an item that is already gone also succeeds."""
    outcome = item_service.delete_item(db, item_id, images)
    if not outcome.existed:
        return ok(message="Item already deleted")
    return ok({"id": item_id, "image": outcome.image}, message="Item deleted successfully")


@router.delete(
    "/{item_id}/image",
    response_model=ApiResponse[ItemPublic],
    response_model_exclude_unset=True,
)
def delete_item_image(
    item_id: ItemId,
    _admin: AdminIdentity,
    db: DbSession,
    images: Images,
) -> dict[str, object]:
    """Remove an item's image file and reference (admin only)."""
    item = item_service.delete_item_image(db, item_id, images)
    return ok(ItemPublic.model_validate(item), message="Image deleted successfully")
