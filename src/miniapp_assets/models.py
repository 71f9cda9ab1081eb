from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int

    def as_dict(self):
        return {"width": self.width, "height": self.height}

    def __str__(self):
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class GeneratedAsset:
    filename: str
    path: Path
    size_bytes: int = 0

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024


# Farcaster embed images use a 3:2 ratio
EMBED_VIEWPORT = Viewport(768, 512)
SPLASH_VIEWPORT = Viewport(424, 695)
ICON_DIMENSIONS = Viewport(208, 208)

SCREENSHOT_VIEWPORTS = {
    "embed": EMBED_VIEWPORT,
    "splash": SPLASH_VIEWPORT,
}
