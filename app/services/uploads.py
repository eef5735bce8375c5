"""Image upload pipeline: accept, transcode to WebP, persist, associate with a record, clean up."""

import io
import logging
import secrets
import time
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import BinaryIO

from PIL import Image, UnidentifiedImageError

from app.core.config import get_settings
from app.core.errors import (
    AppError,
    AssociationFailure,
    FileTooLarge,
    InvalidFileType,
    PersistFailure,
    TranscodeFailure,
)

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
)
DECODABLE_FORMATS = frozenset({"JPEG", "PNG", "GIF", "WEBP"})

# Stored references look like "uploads/<namespace>/<file>" and double as URL paths.
URL_PREFIX = "uploads"
ITEMS = "items"
AVATARS = "avatars"
FILENAME_PREFIXES = {ITEMS: "item", AVATARS: "avatar"}

READ_CHUNK_BYTES = 64 * 1024
# Room for multipart boundaries and the other form fields on top of the file itself.
MULTIPART_OVERHEAD_BYTES = 64 * 1024
PERSIST_ATTEMPTS = 3

# Writes the new reference and returns the one it replaced (or None).
Associate = Callable[[str], str | None]


class ImageStore:
    """
    Owns the upload directory tree and every file written into it.

    Files are only created after validation and transcoding succeed, and a file whose
    database association fails is removed before the error is surfaced.
    """

    def __init__(
        self,
        root: str | Path,
        max_bytes: int = 10 * 1024 * 1024,
        max_dimension: int = 800,
        quality: int = 80,
    ) -> None:
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.max_dimension = max_dimension
        self.quality = quality

    @property
    def max_megabytes(self) -> int:
        return max(1, self.max_bytes // (1024 * 1024))

    # --- accept ---

    def check_content_length(self, content_length: str | None) -> None:
        """Reject a request whose declared size already exceeds the limit, before parsing the form."""
        if not content_length:
            return
        try:
            declared = int(content_length)
        except ValueError:
            return
        if declared > self.max_bytes + MULTIPART_OVERHEAD_BYTES:
            raise FileTooLarge(f"File too large. Maximum size is {self.max_megabytes}MB.")

    def check_type(self, content_type: str | None, filename: str | None = None) -> None:
        media_type = (content_type or "").split(";")[0].strip().lower()
        if media_type not in ALLOWED_IMAGE_TYPES:
            logger.warning(
                "Invalid file type attempted",
                extra={"mimetype": media_type, "original_name": filename},
            )
            raise InvalidFileType()

    def read_limited(self, stream: BinaryIO) -> bytes:
        """Read the upload in chunks, stopping as soon as it passes max_bytes."""
        buf = bytearray()
        while True:
            chunk = stream.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            buf.extend(chunk)
            if len(buf) > self.max_bytes:
                raise FileTooLarge(f"File too large. Maximum size is {self.max_megabytes}MB.")
        return bytes(buf)

    def accept(
        self,
        content_type: str | None,
        stream: BinaryIO,
        filename: str | None = None,
    ) -> bytes:
        self.check_type(content_type, filename)
        return self.read_limited(stream)

    # --- transcode ---

    def transcode(self, data: bytes) -> bytes:
        """Fit inside max_dimension square (never upscaling) and re-encode as WebP."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                if img.format not in DECODABLE_FORMATS:
                    raise InvalidFileType()
                img.load()
                has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
                frame = img.convert("RGBA" if has_alpha else "RGB")
            frame.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)
            out = io.BytesIO()
            frame.save(out, format="WEBP", quality=self.quality)
        except InvalidFileType:
            raise
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.error("Image processing failed", extra={"error": str(e)})
            raise TranscodeFailure(cause=e) from e
        return out.getvalue()

    # --- persist ---

    def _new_filename(self, namespace: str) -> str:
        prefix = FILENAME_PREFIXES.get(namespace, namespace.rstrip("s"))
        stamp = int(time.time() * 1000)
        return f"{prefix}-{stamp}-{secrets.randbelow(10**9)}.webp"

    def persist(self, namespace: str, encoded: bytes) -> str:
        """Write bytes under a fresh unique name; return the stored reference."""
        if namespace not in FILENAME_PREFIXES:
            raise ValueError(f"Unknown upload namespace: {namespace}")
        directory = self.root / namespace
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistFailure(cause=e) from e

        for _ in range(PERSIST_ATTEMPTS):
            filename = self._new_filename(namespace)
            path = directory / filename
            try:
                with open(path, "xb") as fh:
                    fh.write(encoded)
            except FileExistsError:
                continue
            except OSError as e:
                path.unlink(missing_ok=True)
                logger.error("Writing image failed", extra={"path": str(path), "error": str(e)})
                raise PersistFailure(cause=e) from e
            return f"{URL_PREFIX}/{namespace}/{filename}"
        raise PersistFailure("Could not allocate a unique image filename")

    # --- references ---

    def path_for(self, reference: str | None) -> Path | None:
        """Map a stored reference back to a file inside root; None for anything outside it."""
        if not reference:
            return None
        parts = reference.strip("/").split("/")
        if len(parts) != 3 or parts[0] != URL_PREFIX or parts[1] not in FILENAME_PREFIXES:
            return None
        if parts[2] in ("", ".", ".."):
            return None
        return self.root / parts[1] / parts[2]

    def delete(self, reference: str | None) -> bool:
        """Best-effort removal; failures are logged, never raised."""
        path = self.path_for(reference)
        if path is None:
            if reference:
                logger.warning("Refusing to delete unrecognized image reference", extra={"path": reference})
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Deleting image file failed", extra={"path": reference, "error": str(e)})
            return False
        logger.info("Deleted image file", extra={"path": reference})
        return True

    # --- full pipeline ---

    def store(
        self,
        namespace: str,
        content_type: str | None,
        stream: BinaryIO,
        associate: Associate,
        filename: str | None = None,
    ) -> str:
        """
        Run accept -> transcode -> persist -> associate -> old-asset cleanup.

        associate receives the new reference, must commit it, and returns the previous
        reference. If it raises, the new file is deleted: application errors propagate
        unchanged, anything else becomes AssociationFailure.
        """
        data = self.accept(content_type, stream, filename)
        encoded = self.transcode(data)
        reference = self.persist(namespace, encoded)
        logger.info(
            "Image processed and converted to WebP",
            extra={"original_name": filename, "path": reference},
        )

        try:
            previous = associate(reference)
        except AppError:
            self.delete(reference)
            raise
        except Exception as e:
            logger.exception("Associating uploaded image failed", extra={"path": reference})
            self.delete(reference)
            raise AssociationFailure(cause=e) from e

        if previous and previous != reference:
            self.delete(previous)
        return reference


@lru_cache
def get_image_store() -> ImageStore:
    """Dependency: ImageStore rooted at UPLOAD_DIR."""
    settings = get_settings()
    return ImageStore(
        root=settings.UPLOAD_DIR,
        max_bytes=settings.UPLOAD_MAX_BYTES,
        max_dimension=settings.IMAGE_MAX_DIMENSION,
        quality=settings.IMAGE_QUALITY,
    )
