"""palettekit - image URL resolution with on-demand thumbnail generation."""

__version__ = "0.1.0"

from palettekit.core.config import PaletteSettings, config
from palettekit.core.service import Palette

__all__ = [
    "Palette",
    "PaletteSettings",
    "config",
]
