
import logging
import sys
import time
import click
from rich import print
from rich.panel import Panel
from rich.table import Table

from miniapp_assets import __version__
from miniapp_assets.models import ICON_DIMENSIONS, SCREENSHOT_VIEWPORTS
from miniapp_assets.services.icon_service import IconService, is_rate_limit_error
from miniapp_assets.services.manifest_service import ManifestService
from miniapp_assets.services.screenshot_service import ScreenshotService
from miniapp_assets.utils.assets import AssetGenerationError
from miniapp_assets.utils.config import AssetConfig, ConfigError

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    """Setup structured logging format based on debug mode setting."""
    debug_enabled = debug or AssetConfig.is_debug_mode()

    if debug_enabled:
        # Structured debug logging format for easy parsing
        logging.basicConfig(
            level=logging.DEBUG,
            format='[%(asctime)s] [%(levelname)-8s] [%(name)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        logging.info("=" * 60)
        logging.info(f"miniapp-assets v{__version__} - Debug Log")
        logging.info("=" * 60)
        logging.info(f"Python: {sys.version}")
        logging.info(f"Platform: {sys.platform}")
    else:
        logging.basicConfig(level=logging.INFO, format='%(message)s')


def _fail(message: str, error: BaseException):
    logger.error(message)
    logger.error(str(error))
    sys.exit(1)


@click.command()
@click.option('--debug', '-d', is_flag=True, help="Enable verbose debug logging")
@click.version_option(__version__, message='miniapp-screenshots, version %(version)s')
def screenshots_cli(debug):
    """Capture embed and splash screenshots of the Mini App and update farcaster.json."""
    setup_logging(debug)

    try:
        target_url = AssetConfig.get_screenshot_url()
        service = ScreenshotService.from_config()
    except ConfigError as e:
        _fail("Configuration error:", e)

    print_screenshot_parameters(target_url)

    manifest = ManifestService(AssetConfig.manifest_path())
    start = time.monotonic()
    try:
        results = service.generate_screenshots(
            target_url,
            manifest=manifest,
            app_domain=AssetConfig.get_app_domain(),
        )
    except AssetGenerationError as e:
        _fail("Error generating screenshots:", e)

    print_screenshot_report(results, time.monotonic() - start)


@click.command()
@click.argument('prompt', required=False)
@click.option('--debug', '-d', is_flag=True, help="Enable verbose debug logging")
@click.version_option(__version__, message='miniapp-icon, version %(version)s')
def icon_cli(prompt, debug):
    """Generate the Mini App icon with FLUX and update farcaster.json.

    PROMPT overrides the prompt built from the app name in the manifest.
    """
    setup_logging(debug)

    try:
        service = IconService.from_config()
    except ConfigError as e:
        _fail("Configuration error:", e)

    print(Panel(
        f"Model: {service.model['display_name']}\nDimensions: {ICON_DIMENSIONS}px",
        title="FLUX Icon Generator for Farcaster Mini Apps",
        border_style="blue",
    ))

    manifest = ManifestService(AssetConfig.manifest_path())
    try:
        asset = service.run(manifest, custom_prompt=prompt, app_domain=AssetConfig.get_app_domain())
    except AssetGenerationError as e:
        if is_rate_limit_error(e):
            logger.error("Rate limit: please wait before making another request")
        _fail("Error generating icon:", e)

    table = Table(title="Icon generation complete", show_header=False)
    table.add_row("Saved", f"public/images/{asset.filename}")
    table.add_row("Size", f"{asset.size_kb:.2f} KB")
    table.add_row("Manifest", str(manifest.manifest_path))
    print(Panel(table, border_style="green"))


def print_screenshot_parameters(target_url):
    table = Table(title="Generation Parameters", show_header=False)
    table.add_row("Screenshot URL", target_url)
    for kind, viewport in SCREENSHOT_VIEWPORTS.items():
        table.add_row(kind.capitalize(), f"{viewport}px")
    print(Panel(table, title="Screenshot Generator for Farcaster Mini Apps", border_style="blue"))


def print_screenshot_report(results, duration):
    table = Table(title="Screenshot generation complete", show_header=False)
    for kind, asset in results.items():
        table.add_row(kind.capitalize(), f"public/images/{asset.filename} ({asset.size_kb:.2f} KB)")
    table.add_row("Total time", f"{duration:.1f}s")
    print(Panel(table, border_style="green"))
