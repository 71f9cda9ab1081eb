import sys
from pathlib import Path

# Ensure 'src' is in sys.path
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def _run(command_name):
    try:
        from miniapp_assets.cli import commands
        getattr(commands, command_name)()
    except Exception as e:
        print(f"Critical Error in CLI: {e}")
        sys.exit(1)


def main_screenshots():
    """Entry point for `miniapp-screenshots`."""
    _run("screenshots_cli")


def main_icon():
    """Entry point for `miniapp-icon`."""
    _run("icon_cli")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] in ("screenshots", "icon"):
        if sys.argv.pop(1) == "icon":
            main_icon()
        else:
            main_screenshots()
    else:
        print("Usage: python -m miniapp_assets.cli_main {screenshots|icon} [ARGS]")
        sys.exit(2)
