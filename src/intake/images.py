"""Image intake checks — MIME allow-list, size ceiling and per-session count."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from src.config import settings

logger = structlog.get_logger()

ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/png", "image/webp"})


@dataclass(frozen=True)
class ImageUpload:
    """One photo attached to the intake form."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def validate_images(
    images: list[ImageUpload],
    max_bytes: int | None = None,
    max_count: int | None = None,
) -> tuple[list[ImageUpload], list[str]]:
    """Split uploads into accepted images and per-file error messages.

    A bad file never rejects the rest of the batch. Files past the
    per-session limit are rejected individually.

    Returns:
        (accepted, errors); accepted keeps the upload order
    """
    max_bytes = settings.image_max_bytes if max_bytes is None else max_bytes
    max_count = settings.image_max_count if max_count is None else max_count

    accepted: list[ImageUpload] = []
    errors: list[str] = []

    for image in images:
        name = image.filename or "image"
        content_type = (image.content_type or "").lower()

        if content_type not in ALLOWED_CONTENT_TYPES:
            errors.append(f"{name}: format non supporté ({content_type or 'inconnu'}), JPEG, PNG ou WebP uniquement")
        elif image.size == 0:
            errors.append(f"{name}: fichier vide")
        elif image.size > max_bytes:
            errors.append(
                f"{name}: fichier trop volumineux ({image.size / (1024 * 1024):.1f} Mo, max {max_bytes / (1024 * 1024):.0f} Mo)"
            )
        elif len(accepted) >= max_count:
            errors.append(f"{name}: maximum {max_count} images par diagnostic")
        else:
            accepted.append(image)

    if errors:
        logger.info("images_rejected", rejected=len(errors), accepted=len(accepted))

    return accepted, errors
