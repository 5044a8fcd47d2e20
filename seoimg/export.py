"""Write completed images to disk, individually or as a ZIP archive."""

from __future__ import annotations

import base64
import binascii
import logging
import zipfile
from pathlib import Path

from seoimg.generation.prompt import display_name
from seoimg.sanitize import safe_filename
from seoimg.schemas.models import GenerationRequest, ItemStatus

logger = logging.getLogger(__name__)


def completed_items(items: list[GenerationRequest]) -> list[GenerationRequest]:
    return [i for i in items if i.status is ItemStatus.COMPLETED and i.result_image]


def image_filename(item: GenerationRequest, index: int) -> str:
    """``<slug of title/content>.png``, falling back to ``<type>-<n>.png``."""
    base = safe_filename(display_name(item)) or f"{item.template_type.value}-{index + 1}"
    return f"{base}.png"


def _unique(name: str, used: set[str]) -> str:
    stem, suffix = name.rsplit(".", 1)
    candidate, n = name, 2
    while candidate in used:
        candidate = f"{stem}-{n}.{suffix}"
        n += 1
    used.add(candidate)
    return candidate


def decode_image(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Image payload is not valid base64: {e}") from e


def write_images(items: list[GenerationRequest], out_dir: Path) -> list[Path]:
    """Write each completed image as a PNG file; returns the written paths."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    used: set[str] = set()
    written: list[Path] = []
    for index, item in enumerate(completed_items(items)):
        path = out_dir / _unique(image_filename(item, index), used)
        path.write_bytes(decode_image(item.result_image))
        written.append(path)
    return written


def export_zip(items: list[GenerationRequest], zip_path: Path) -> int:
    """Bundle completed images into ``zip_path``. Returns the image count (0 writes nothing)."""
    done = completed_items(items)
    if not done:
        return 0
    zip_path = Path(zip_path)
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    used: set[str] = set()
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for index, item in enumerate(done):
            zf.writestr(_unique(image_filename(item, index), used), decode_image(item.result_image))
    logger.info("Wrote %d images to %s", len(done), zip_path)
    return len(done)
