import json
import logging
import time
from pathlib import Path
from typing import Dict, Optional

import requests

from miniapp_assets.models import GeneratedAsset, Viewport, SCREENSHOT_VIEWPORTS
from miniapp_assets.services.manifest_service import ManifestService
from miniapp_assets.utils.assets import (
    AssetGenerationError,
    clear_stale_assets,
    ensure_protocol,
    generate_filename,
    save_image,
)
from miniapp_assets.utils.config import AssetConfig

logger = logging.getLogger(__name__)


class ScreenshotError(AssetGenerationError):
    """The rendering API did not return an image."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_text: str = ""):
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class ScreenshotService:
    """
    Captures the deployed Mini App through a Browserless /screenshot endpoint.
    """

    FILENAME_PREFIX = "screenshot"
    WAIT_UNTIL = "networkidle2"

    def __init__(self,
                 base_url: str,
                 token: str = AssetConfig.DEFAULT_BROWSERLESS_TOKEN,
                 images_dir: Optional[Path] = None,
                 ready_text: str = AssetConfig.DEFAULT_READY_TEXT,
                 ready_timeout_ms: int = AssetConfig.DEFAULT_READY_TIMEOUT_MS,
                 delay_seconds: float = AssetConfig.DEFAULT_SCREENSHOT_DELAY,
                 timeout: float = AssetConfig.DEFAULT_REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.images_dir = Path(images_dir) if images_dir else AssetConfig.images_dir()
        self.ready_text = ready_text
        self.ready_timeout_ms = ready_timeout_ms
        self.delay_seconds = delay_seconds
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> "ScreenshotService":
        """Builds the service from the environment. Raises ConfigError if BROWSERLESS_API_URL is missing."""
        return cls(
            base_url=AssetConfig.get_browserless_url(),
            token=AssetConfig.get_browserless_token(),
            images_dir=AssetConfig.images_dir(),
            ready_text=AssetConfig.get_ready_text(),
            ready_timeout_ms=AssetConfig.get_ready_timeout_ms(),
            delay_seconds=AssetConfig.get_screenshot_delay(),
            timeout=AssetConfig.get_request_timeout(),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/screenshot"

    def build_request_body(self, url: str, viewport: Viewport) -> dict:
        # innerText is lowercased before matching, so the marker must be too
        marker = self.ready_text.lower().replace("\\", "\\\\").replace("'", "\\'")
        return {
            "url": ensure_protocol(url),
            "gotoOptions": {"waitUntil": self.WAIT_UNTIL},
            "viewport": viewport.as_dict(),
            "waitForFunction": {
                "fn": f"() => document.body && document.body.innerText.toLowerCase().includes('{marker}')",
                "timeout": self.ready_timeout_ms,
            },
        }

    def take_screenshot(self, url: str, viewport: Viewport, filename: str) -> GeneratedAsset:
        """
        Renders 'url' at 'viewport' and stores the PNG as images_dir/filename.
        Raises ScreenshotError on a non-2xx status, a non-image response or a network error.
        """
        logger.info(f"Taking screenshot with viewport {viewport}...")
        logger.debug(f"Using browserless API: {self.base_url}")

        body = self.build_request_body(url, viewport)
        logger.debug(f"Request options: {json.dumps(body, indent=2)}")

        headers = {
            "Cache-Control": "no-cache",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(
                self.endpoint,
                params={"token": self.token},
                headers=headers,
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Screenshot failed: {e}")
            raise ScreenshotError(f"Screenshot request failed: {e}") from e

        if not resp.ok:
            logger.error(f"Screenshot failed: {resp.status_code} {resp.reason}")
            raise ScreenshotError(
                f"API request failed: {resp.status_code} {resp.reason}\n{resp.text}",
                status_code=resp.status_code,
                response_text=resp.text,
            )

        content_type = resp.headers.get("Content-Type", "")
        if not content_type.startswith("image/"):
            logger.error(f"Screenshot failed: unexpected content type {content_type!r}")
            raise ScreenshotError(
                f"Expected image response, got {content_type or 'no content type'}\n{resp.text}",
                status_code=resp.status_code,
                response_text=resp.text,
            )

        return save_image(resp.content, filename, self.images_dir)

    def generate_single_screenshot(self, url: str, viewport: Viewport, kind: str) -> GeneratedAsset:
        start = time.monotonic()
        logger.info(f"Taking {kind} screenshot ({viewport})...")
        logger.info(f"URL: {url}")
        try:
            filename = generate_filename(kind, self.FILENAME_PREFIX)
            asset = self.take_screenshot(url, viewport, filename)
        except AssetGenerationError as e:
            logger.error(f"Failed to generate {kind} screenshot: {e}")
            raise
        logger.info(f"Generated {kind} screenshot in {time.monotonic() - start:.1f}s: {asset.filename}")
        return asset

    def clear_existing_screenshots(self):
        prefixes = [f"{self.FILENAME_PREFIX}-{kind}-" for kind in SCREENSHOT_VIEWPORTS]
        return clear_stale_assets(self.images_dir, prefixes)

    def wait_between_calls(self):
        if self.delay_seconds > 0:
            logger.info(f"Waiting {self.delay_seconds:g}s to respect rate limits...")
            time.sleep(self.delay_seconds)

    def generate_screenshots(self, url: str,
                             manifest: Optional[ManifestService] = None,
                             app_domain: Optional[str] = None) -> Dict[str, GeneratedAsset]:
        """
        Full pipeline: clear old screenshots, capture embed, wait, capture splash,
        then point the manifest at the new files. Generator failures propagate;
        the manifest is only touched after both captures succeeded.
        """
        self.clear_existing_screenshots()

        results = {}
        for index, (kind, viewport) in enumerate(SCREENSHOT_VIEWPORTS.items()):
            if index:
                self.wait_between_calls()
            results[kind] = self.generate_single_screenshot(url, viewport, kind)

        if manifest is not None:
            manifest.update_screenshots(
                app_domain,
                embed=results["embed"].filename,
                splash=results["splash"].filename,
            )
        return results
