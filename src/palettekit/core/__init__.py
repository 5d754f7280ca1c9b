"""Core functionality for image URL resolution and serving.

This module provides the core components of palettekit:

- **Palette**: the facade application code talks to
- **QueryTemplateRegistry**: named shortcuts for transformation queries
- **ExceptionPolicy**: ``Throw`` / ``LogVerbose`` / ``LogToChannel``
- **FallbackCoordinator**: fallback image substitution on failure
- **Generator**: capability interface for image backends
- **PictureServer**: default Pillow-backed generator
- **PaletteSettings**: configuration using Pydantic Settings

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration, ``PALETTE_`` prefix
   - Required settings enforced at startup

2. **Facade Layer** (service.py, templates.py, policy.py, fallback.py):
   - Template expansion, URL shaping, failure policy, fallback images

3. **Generator Layer** (generator.py, picture_server.py, picture.py):
   - Capability interface and the bundled Pillow implementation

Usage Example
-------------
    from palettekit.core import Palette, PaletteSettings

    palette = Palette.from_config(PaletteSettings(
        path="www/thumbs",
        url="/thumbs",
        basepath="www",
        signing_key="change-me",
        templates={"thumb": "Resize;120;120;fill"},
    ))

    url, picture = palette.resolve("img/cat.jpg", "thumb")
"""

from palettekit.core.config import PaletteSettings, config
from palettekit.core.errors import (
    ConfigurationError,
    GenerationError,
    ImageNotFoundError,
    PaletteError,
    ResolutionError,
    SecurityError,
)
from palettekit.core.fallback import FallbackCoordinator
from palettekit.core.generator import Generator, PictureLoader, ResolvedPicture, ServedImage
from palettekit.core.models import PictureUrl
from palettekit.core.picture import FilesystemPictureLoader, Picture
from palettekit.core.picture_server import PictureServer
from palettekit.core.policy import ExceptionPolicy, LogToChannel, LogVerbose, Throw
from palettekit.core.service import Palette
from palettekit.core.templates import QueryTemplateRegistry

__all__ = [
    "ConfigurationError",
    "ExceptionPolicy",
    "FallbackCoordinator",
    "FilesystemPictureLoader",
    "GenerationError",
    "Generator",
    "ImageNotFoundError",
    "LogToChannel",
    "LogVerbose",
    "Palette",
    "PaletteError",
    "PaletteSettings",
    "Picture",
    "PictureLoader",
    "PictureServer",
    "PictureUrl",
    "QueryTemplateRegistry",
    "ResolutionError",
    "ResolvedPicture",
    "SecurityError",
    "ServedImage",
    "Throw",
    "config",
]
