"""Exception hierarchy for palettekit.

Every error raised by the facade or the bundled generator derives from
:class:`PaletteError`, so callers can catch the whole family at once.

Hierarchy
---------
::

    PaletteError
    ├── ConfigurationError     startup only, never during a request
    ├── GenerationError        the generator could not produce an image
    │   └── SecurityError      signing token missing or forged
    ├── ResolutionError        strict resolution produced no URL / picture
    └── ImageNotFoundError     generic outward "not found" signal
"""

from __future__ import annotations

NOT_FOUND_MESSAGE = "Image doesn't exist"


class PaletteError(Exception):
    """Base class for all palettekit errors."""


class ConfigurationError(PaletteError):
    """Raised at startup when required configuration is missing or invalid."""


class GenerationError(PaletteError):
    """Raised when the generator cannot produce the requested image."""


class SecurityError(GenerationError):
    """Raised when an inbound request carries an invalid signing token."""


class ResolutionError(PaletteError):
    """Raised when strict resolution yields no URL or no picture."""


class ImageNotFoundError(PaletteError):
    """Generic "not found" signal for the transport layer.

    The message never carries internal detail.  When a fallback image was
    produced, its bytes travel on the same failure as ``body`` so the
    transport can send them with the not-found status.

    Attributes:
        body: Substitute image bytes, or ``None``.
        media_type: MIME type of ``body``, or ``None``.
    """

    def __init__(self, body: bytes | None = None, media_type: str | None = None) -> None:
        super().__init__(NOT_FOUND_MESSAGE)
        self.body = body
        self.media_type = media_type

    @property
    def has_body(self) -> bool:
        return self.body is not None
