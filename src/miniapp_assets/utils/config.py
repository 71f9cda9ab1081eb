import sys
import logging
import os
from pathlib import Path
from typing import Optional, Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a required setting is missing."""

    def __init__(self, name: str, hint: str = ""):
        self.name = name
        self.hint = hint
        message = f"{name} is not set."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class AssetConfig:
    """
    Centralized configuration for the asset generators.
    Handles precedence of settings:
    1. Process environment (exported variables, CI secrets)
    2. `.env` file in the working directory (loaded once, never overrides 1.)
    3. Built-in defaults
    """

    ENV_FILE = ".env"
    DEBUG_ENV = "MINIAPP_ASSETS_DEBUG"

    PUBLIC_DIR = "public"
    IMAGES_SUBDIR = "images"
    MANIFEST_SUBPATH = (".well-known", "farcaster.json")

    # Tuned against the hosted Browserless instance; overridable per deployment
    DEFAULT_SCREENSHOT_DELAY = 2.0
    DEFAULT_READY_TEXT = "by uratmangun"
    DEFAULT_READY_TIMEOUT_MS = 10000
    DEFAULT_REQUEST_TIMEOUT = 60.0
    DEFAULT_BROWSERLESS_TOKEN = "dawdawdwa"
    DEFAULT_TOGETHER_API_BASE = "https://api.together.xyz/v1"

    _env_loaded = False

    @classmethod
    def load_env(cls, force: bool = False) -> bool:
        """Loads the .env file once per process. Returns True if a file was read."""
        if cls._env_loaded and not force:
            return False
        cls._env_loaded = True
        env_path = Path.cwd() / cls.ENV_FILE
        if not env_path.exists():
            logger.debug(f"No {cls.ENV_FILE} found at {env_path}")
            return False
        loaded = load_dotenv(env_path, override=False)
        logger.debug(f"Loaded environment from {env_path}")
        return loaded

    @classmethod
    def get_value(cls, value_name: str, default: Any = None) -> Any:
        """
        Retrieves a setting from the environment.
        Empty strings count as unset and yield 'default'.
        """
        cls.load_env()
        val = os.environ.get(value_name)
        if val is None or val.strip() == "":
            return default
        return val.strip()

    @classmethod
    def get_int(cls, value_name: str, default: int) -> int:
        val = cls.get_value(value_name)
        if val is None:
            return default
        try:
            return int(val)
        except ValueError:
            logger.warning(f"Config '{value_name}' is not an integer ({val!r}), using {default}")
            return default

    @classmethod
    def get_float(cls, value_name: str, default: float) -> float:
        val = cls.get_value(value_name)
        if val is None:
            return default
        try:
            return float(val)
        except ValueError:
            logger.warning(f"Config '{value_name}' is not a number ({val!r}), using {default}")
            return default

    @classmethod
    def require(cls, value_name: str, hint: str = "") -> str:
        """Returns the value or raises ConfigError if it is missing."""
        val = cls.get_value(value_name)
        if val is None:
            raise ConfigError(value_name, hint)
        return val

    @classmethod
    def is_debug_mode(cls) -> bool:
        """Checks if debug mode is enabled via Command Line or Environment."""
        if '--debug' in sys.argv or '-d' in sys.argv:
            return True

        if str(cls.get_value(cls.DEBUG_ENV, "")).lower() in ('1', 'true', 'yes'):
            return True

        from miniapp_assets import __version__
        return "dev" in __version__.lower()

    # --- Paths ---

    @classmethod
    def project_root(cls) -> Path:
        return Path.cwd()

    @classmethod
    def images_dir(cls) -> Path:
        return cls.project_root() / cls.PUBLIC_DIR / cls.IMAGES_SUBDIR

    @classmethod
    def manifest_path(cls) -> Path:
        return cls.project_root().joinpath(cls.PUBLIC_DIR, *cls.MANIFEST_SUBPATH)

    # --- Screenshot settings ---

    @classmethod
    def get_screenshot_url(cls) -> str:
        return cls.require(
            "SCREENSHOT_URL",
            "Please add your app domain to your .env file. Example: SCREENSHOT_URL=your-domain.ngrok.app",
        )

    @classmethod
    def get_browserless_url(cls) -> str:
        url = cls.require(
            "BROWSERLESS_API_URL",
            "Please add your browserless API URL to your .env file.",
        )
        return url.rstrip("/")

    @classmethod
    def get_browserless_token(cls) -> str:
        return cls.get_value("BROWSERLESS_TOKEN", cls.DEFAULT_BROWSERLESS_TOKEN)

    @classmethod
    def get_app_domain(cls) -> Optional[str]:
        return cls.get_value("NEXT_PUBLIC_APP_DOMAIN")

    @classmethod
    def get_screenshot_delay(cls) -> float:
        return max(0.0, cls.get_float("SCREENSHOT_DELAY_SECONDS", cls.DEFAULT_SCREENSHOT_DELAY))

    @classmethod
    def get_ready_text(cls) -> str:
        return cls.get_value("SCREENSHOT_READY_TEXT", cls.DEFAULT_READY_TEXT)

    @classmethod
    def get_ready_timeout_ms(cls) -> int:
        return cls.get_int("SCREENSHOT_READY_TIMEOUT_MS", cls.DEFAULT_READY_TIMEOUT_MS)

    @classmethod
    def get_request_timeout(cls) -> float:
        return cls.get_float("MINIAPP_ASSETS_REQUEST_TIMEOUT", cls.DEFAULT_REQUEST_TIMEOUT)

    # --- Icon settings ---

    @classmethod
    def get_together_api_key(cls) -> str:
        return cls.require(
            "TOGETHER_API_KEY",
            "Please add your Together AI API key to your .env file. "
            "Get your API key from: https://api.together.xyz/settings/api-keys",
        )

    @classmethod
    def get_together_api_base(cls) -> str:
        return cls.get_value("TOGETHER_API_BASE", cls.DEFAULT_TOGETHER_API_BASE).rstrip("/")
