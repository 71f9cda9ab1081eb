import logging
import random
import time
from pathlib import Path
from typing import Optional

import requests

from miniapp_assets.models import GeneratedAsset, Viewport, ICON_DIMENSIONS
from miniapp_assets.services.manifest_service import ManifestService
from miniapp_assets.utils.assets import (
    AssetGenerationError,
    clear_stale_assets,
    download_image,
    generate_filename,
    save_base64_image,
)
from miniapp_assets.utils.config import AssetConfig

logger = logging.getLogger(__name__)

FLUX_MODEL = {
    "id": "black-forest-labs/FLUX.1-schnell-Free",
    "display_name": "FLUX.1-schnell (Free)",
    # fast tier
    "default_steps": 4,
}

MAX_SEED = 1000000


class IconGenerationError(AssetGenerationError):
    """The image API failed or returned no usable image."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def build_icon_prompt(app_name: str) -> str:
    return (
        f"Create a clean, minimalist app icon with the text '{app_name}' in bold, modern typography. "
        "Square format, centered text, simple background, high contrast, professional design "
        "suitable for mobile app icon. Clean and readable at small sizes."
    )


def is_rate_limit_error(error: BaseException) -> bool:
    message = str(error)
    return "429" in message or "rate limit" in message.lower()


class IconService:
    """
    Generates the Mini App icon with FLUX via the Together AI images API.
    """

    FILENAME_PREFIX = "flux"
    KIND = "icon"

    def __init__(self,
                 api_key: str,
                 api_base: str = AssetConfig.DEFAULT_TOGETHER_API_BASE,
                 images_dir: Optional[Path] = None,
                 model: Optional[dict] = None,
                 timeout: float = AssetConfig.DEFAULT_REQUEST_TIMEOUT):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.images_dir = Path(images_dir) if images_dir else AssetConfig.images_dir()
        self.model = model or FLUX_MODEL
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> "IconService":
        """Builds the service from the environment. Raises ConfigError if TOGETHER_API_KEY is missing."""
        return cls(
            api_key=AssetConfig.get_together_api_key(),
            api_base=AssetConfig.get_together_api_base(),
            images_dir=AssetConfig.images_dir(),
            timeout=AssetConfig.get_request_timeout(),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/images/generations"

    def build_payload(self, prompt: str, dimensions: Viewport, seed: Optional[int] = None,
                      response_format: str = "b64_json") -> dict:
        if seed is None:
            seed = random.randrange(MAX_SEED)
        return {
            "model": self.model["id"],
            "prompt": prompt,
            "width": dimensions.width,
            "height": dimensions.height,
            "steps": self.model["default_steps"],
            "n": 1,
            "seed": seed,
            "response_format": response_format,
        }

    def _request_images(self, payload: dict) -> list:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(self.endpoint, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise IconGenerationError(f"Image generation request failed: {e}") from e

        if not resp.ok:
            raise IconGenerationError(
                f"{resp.status_code} {resp.reason}: {resp.text[:500]}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise IconGenerationError(f"Invalid JSON from image API: {e}", status_code=resp.status_code) from e

        data = body.get("data") if isinstance(body, dict) else None
        if not data or not isinstance(data, list):
            raise IconGenerationError("No image data received from API")
        return data

    def generate_icon(self, prompt: str, dimensions: Viewport = ICON_DIMENSIONS,
                      response_format: str = "b64_json") -> GeneratedAsset:
        """
        Requests a single image and stores it as images_dir/flux-icon-<timestamp>.png.

        Raises:
            IconGenerationError: on an HTTP error, an empty result list or a result
                without image data. Nothing is written in that case.
        """
        start = time.monotonic()
        logger.info(f"Generating icon image ({dimensions})...")
        logger.info(f"Prompt: {prompt}")

        try:
            data = self._request_images(self.build_payload(prompt, dimensions, response_format=response_format))
            image_data = data[0] if isinstance(data[0], dict) else {}
            filename = generate_filename(self.KIND, self.FILENAME_PREFIX)

            if response_format == "url":
                if not image_data.get("url"):
                    raise IconGenerationError("No image URL in response")
                asset = download_image(image_data["url"], filename, self.images_dir, timeout=self.timeout)
            else:
                if not image_data.get("b64_json"):
                    raise IconGenerationError("No base64 image data in response")
                asset = save_base64_image(image_data["b64_json"], filename, self.images_dir)
        except AssetGenerationError as e:
            logger.error(f"Failed to generate icon image: {e}")
            raise

        logger.info(f"Generated icon image in {time.monotonic() - start:.1f}s: {asset.filename}")
        return asset

    def clear_existing_icons(self):
        return clear_stale_assets(self.images_dir, [f"{self.FILENAME_PREFIX}-{self.KIND}-"])

    def run(self, manifest: ManifestService, custom_prompt: Optional[str] = None,
            app_domain: Optional[str] = None) -> GeneratedAsset:
        """Full pipeline: pick the prompt, clear old icons, generate, update iconUrl."""
        app_name = manifest.read_app_name()
        prompt = custom_prompt or build_icon_prompt(app_name)
        logger.info(f"App: {app_name}")
        logger.info(f"Model: {self.model['display_name']}")

        self.clear_existing_icons()
        asset = self.generate_icon(prompt, ICON_DIMENSIONS)
        manifest.update_icon(asset.filename, app_domain)
        return asset
