import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "Mini App"


def _base_url(domain: str) -> str:
    return f"https://{domain}"


def apply_screenshot_patch(manifest: Dict[str, Any], domain: Optional[str],
                           embed: Optional[str] = None, splash: Optional[str] = None) -> Dict[str, Any]:
    """
    Returns a copy of 'manifest' pointing the embed/splash images, homeUrl and
    webhookUrl at 'domain'. Manifests without a 'miniapp' object are returned unchanged.
    """
    patched = copy.deepcopy(manifest)
    miniapp = patched.get("miniapp")
    if not isinstance(miniapp, dict):
        return patched

    base_url = _base_url(domain)
    if embed:
        miniapp["imageUrl"] = f"{base_url}/images/{embed}"
    if splash:
        miniapp["splashImageUrl"] = f"{base_url}/images/{splash}"

    miniapp["homeUrl"] = base_url
    miniapp["webhookUrl"] = f"{base_url}/api/webhook"
    return patched


def resolve_icon_domain(manifest: Dict[str, Any], fallback_domain: Optional[str]) -> Optional[str]:
    """Origin of miniapp.homeUrl if it has one, else https://<fallback_domain> (None if neither)."""
    miniapp = manifest.get("miniapp")
    home_url = miniapp.get("homeUrl") if isinstance(miniapp, dict) else None
    if home_url and not isinstance(home_url, str):
        logger.warning(f"homeUrl is not a string ({type(home_url).__name__}), falling back to configured domain")
        home_url = None
    if home_url:
        parts = urlsplit(home_url)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
        logger.warning(f"homeUrl '{home_url}' has no origin, falling back to configured domain")
    if not fallback_domain:
        return None
    return _base_url(fallback_domain)


def apply_icon_patch(manifest: Dict[str, Any], icon_filename: Optional[str],
                     fallback_domain: Optional[str]) -> Dict[str, Any]:
    patched = copy.deepcopy(manifest)
    miniapp = patched.get("miniapp")
    if isinstance(miniapp, dict) and icon_filename:
        domain = resolve_icon_domain(patched, fallback_domain)
        if domain is None:
            logger.warning("No homeUrl in manifest and NEXT_PUBLIC_APP_DOMAIN is not set, iconUrl left unchanged")
        else:
            miniapp["iconUrl"] = f"{domain}/images/{icon_filename}"
    return patched


def get_app_name(manifest: Optional[Dict[str, Any]]) -> str:
    if not manifest:
        return DEFAULT_APP_NAME
    miniapp = manifest.get("miniapp")
    if isinstance(miniapp, dict) and miniapp.get("name"):
        return str(miniapp["name"])
    return DEFAULT_APP_NAME


class ManifestService:
    """
    Reads and rewrites the Mini App manifest (farcaster.json).
    Every failure here is logged and swallowed: a broken manifest never
    aborts a run whose images were already generated.
    """

    def __init__(self, manifest_path: Union[str, Path]):
        self.manifest_path = Path(manifest_path)

    def exists(self) -> bool:
        return self.manifest_path.is_file()

    def load(self) -> Dict[str, Any]:
        """Parses the manifest. Raises OSError / ValueError for the caller to handle."""
        with open(self.manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("Manifest root must be a JSON object")
        return data

    def save(self, manifest: Dict[str, Any]):
        content = json.dumps(manifest, indent=2, ensure_ascii=False)
        with open(self.manifest_path, "w", encoding="utf-8") as f:
            f.write(content)

    def read_app_name(self) -> str:
        """Returns miniapp.name, or the placeholder if the manifest is missing or unreadable."""
        try:
            return get_app_name(self.load())
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read app name from {self.manifest_path.name}, using default ({e})")
            return DEFAULT_APP_NAME

    def _patch(self, transform, description: str) -> bool:
        if not self.exists():
            logger.warning(f"{self.manifest_path.name} not found at {self.manifest_path}, skipping update")
            return False
        try:
            manifest = self.load()
            self.save(transform(manifest))
        except (OSError, ValueError) as e:
            logger.error(f"Error updating {self.manifest_path.name}: {e}")
            return False
        logger.info(f"Updated {self.manifest_path.name} with {description}")
        return True

    def update_screenshots(self, domain: Optional[str], embed: Optional[str] = None,
                           splash: Optional[str] = None) -> bool:
        if not domain:
            logger.warning("NEXT_PUBLIC_APP_DOMAIN is not set, skipping manifest update")
            return False
        return self._patch(
            lambda m: apply_screenshot_patch(m, domain, embed=embed, splash=splash),
            "new screenshot URLs and domain",
        )

    def update_icon(self, icon_filename: str, fallback_domain: Optional[str]) -> bool:
        return self._patch(
            lambda m: apply_icon_patch(m, icon_filename, fallback_domain),
            "new icon URL",
        )
