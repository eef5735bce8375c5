"""Item store: CRUD by id, with image handling through the upload pipeline."""

import logging
from dataclasses import dataclass
from typing import Any, BinaryIO

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationFailed
from app.models.item import Item
from app.services.uploads import ITEMS, ImageStore

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "price", "quantity")


@dataclass
class ImageUpload:
    """An image part pulled out of a multipart request, not yet validated."""

    content_type: str | None
    stream: BinaryIO
    filename: str | None = None


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of an idempotent delete: existed is False when the row was already gone."""

    existed: bool
    image: str | None = None


def list_items(db: Session) -> list[Item]:
    return db.query(Item).order_by(Item.created_at.desc(), Item.id.desc()).all()


def get_item(db: Session, item_id: int) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if item is None:
        raise NotFoundError("Item not found")
    return item


def create_item(
    db: Session,
    fields: dict[str, Any],
    images: ImageStore,
    upload: ImageUpload | None = None,
) -> Item:
    """Insert an item; with an image, the row insert is the association step of the pipeline."""
    item = Item(
        name=fields["name"],
        description=fields.get("description") or None,
        price=fields.get("price") or 0.0,
        quantity=fields.get("quantity") or 0,
    )
    if upload is None:
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    def associate(reference: str) -> str | None:
        item.image = reference
        try:
            db.add(item)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return None

    images.store(ITEMS, upload.content_type, upload.stream, associate, filename=upload.filename)
    db.refresh(item)
    return item


def update_item(
    db: Session,
    item_id: int,
    fields: dict[str, Any],
    images: ImageStore,
    upload: ImageUpload | None = None,
) -> Item:
    """Apply the provided fields; a new image replaces (and then deletes) the old one."""
    changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS and v is not None}

    if upload is None:
        item = get_item(db, item_id)
        for field, value in changes.items():
            setattr(item, field, value)
        db.commit()
        db.refresh(item)
        return item

    def associate(reference: str) -> str | None:
        try:
            item = (
                db.query(Item)
                .filter(Item.id == item_id)
                .with_for_update()
                .first()
            )
            if item is None:
                raise NotFoundError("Item not found")
            previous = item.image
            for field, value in changes.items():
                setattr(item, field, value)
            item.image = reference
            db.commit()
        except Exception:
            db.rollback()
            raise
        return previous

    images.store(ITEMS, upload.content_type, upload.stream, associate, filename=upload.filename)
    return get_item(db, item_id)


def delete_item(db: Session, item_id: int, images: ImageStore) -> DeleteOutcome:
    """
    Delete an item; deleting an id that is already gone succeeds.

    The existence check and the delete share one transaction, so two overlapping deletes
    both report success and exactly one of them removes the image file.
    """
    try:
        item = (
            db.query(Item)
            .filter(Item.id == item_id)
            .with_for_update()
            .first()
        )
        if item is None:
            db.rollback()
            return DeleteOutcome(existed=False)
        image = item.image
        deleted = (
            db.query(Item)
            .filter(Item.id == item_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if not deleted:
        return DeleteOutcome(existed=False)
    logger.info("Item deleted", extra={"item_id": item_id})
    if image:
        images.delete(image)
    return DeleteOutcome(existed=True, image=image)


def delete_item_image(db: Session, item_id: int, images: ImageStore) -> Item:
    """Clear the item's image reference, then remove the file."""
    item = get_item(db, item_id)
    if not item.image:
        raise ValidationFailed("Item has no image")
    previous = item.image
    item.image = None
    db.commit()
    db.refresh(item)
    images.delete(previous)
    return item
