import base64
import binascii
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

import requests

from miniapp_assets.models import GeneratedAsset

logger = logging.getLogger(__name__)

_PROTOCOL_RE = re.compile(r"^https?://", re.IGNORECASE)


class AssetGenerationError(RuntimeError):
    """Base error for a failed generation call. Always fatal for the run."""


def ensure_protocol(url: str) -> str:
    """Prefixes https:// unless the URL already carries an http(s) scheme."""
    if not _PROTOCOL_RE.match(url):
        return f"https://{url}"
    return url


def generate_filename(kind: str, prefix: str, now: Optional[datetime] = None) -> str:
    """
    Builds '<prefix>-<kind>-<timestamp>.png'.
    The timestamp is UTC ISO-8601 with millisecond precision, with ':' and '.'
    replaced by '-' so the name is safe on every filesystem.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    stamp = now.isoformat(timespec="milliseconds") + "Z"
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{prefix}-{kind}-{stamp}.png"


def clear_stale_assets(images_dir: Union[str, Path], prefixes: Iterable[str]) -> List[str]:
    """
    Deletes previously generated PNGs whose name starts with one of 'prefixes'.
    Returns the names that were removed. Failures are logged and skipped.
    """
    images_dir = Path(images_dir)
    if not images_dir.is_dir():
        return []

    prefixes = tuple(prefixes)
    stale = sorted(
        p for p in images_dir.iterdir()
        if p.is_file() and p.name.startswith(prefixes) and p.name.endswith(".png")
    )
    if not stale:
        return []

    logger.info("Clearing existing generated images...")
    deleted = []
    for path in stale:
        try:
            path.unlink()
            deleted.append(path.name)
            logger.info(f"   Deleted: {path.name}")
        except OSError as e:
            logger.warning(f"   Failed to delete: {path.name} ({e})")
    return deleted


def save_image(data: bytes, filename: str, images_dir: Union[str, Path]) -> GeneratedAsset:
    """Writes raw image bytes to images_dir/filename, creating the directory if needed."""
    images_dir = Path(images_dir)
    images_dir.mkdir(parents=True, exist_ok=True)
    path = images_dir / filename
    path.write_bytes(data)
    asset = GeneratedAsset(filename=filename, path=path, size_bytes=len(data))
    logger.info(f"Image saved: {filename} ({asset.size_kb:.2f} KB)")
    return asset


def save_base64_image(b64_data: str, filename: str, images_dir: Union[str, Path]) -> GeneratedAsset:
    try:
        data = base64.b64decode(b64_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AssetGenerationError(f"Invalid base64 image data: {e}") from e
    return save_image(data, filename, images_dir)


def download_image(url: str, filename: str, images_dir: Union[str, Path], timeout: float = 60) -> GeneratedAsset:
    """Fetches an image URL (for APIs that return links instead of inline data)."""
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise AssetGenerationError(f"Failed to download image: {e}") from e
    if not resp.ok:
        raise AssetGenerationError(f"Failed to download image: {resp.status_code} {resp.reason}")
    return save_image(resp.content, filename, images_dir)
