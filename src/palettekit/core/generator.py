"""Capability interfaces for image generation backends.

The facade in :mod:`palettekit.core.service` never touches pixels, files or
signing keys itself.  It talks to a :class:`Generator` through the small set
of operations declared here, so an alternative backend can be dropped in via
configuration without changing the core.

Interfaces
----------
Generator
    Turns a spec string (``"image@query"``) into a :class:`ResolvedPicture`
    and serves inbound generation requests.
ResolvedPicture
    A materialised (possibly cached) derived image owned by the generator.
PictureLoader
    Loads the source image for a picture.  Generators delegate source access
    to a loader so that sources can live somewhere other than local disk.

See Also
--------
- :class:`palettekit.core.picture_server.PictureServer` — default generator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

SPEC_SEPARATOR = "@"


def join_spec(image: str, query: str | None) -> str:
    """Combine an image identifier and an optional query into a spec string."""
    if query is None:
        return image
    return f"{image}{SPEC_SEPARATOR}{query}"


def split_spec(spec: str) -> tuple[str, str | None]:
    """Split a spec string into ``(image, query)`` at the last separator."""
    image, sep, query = spec.rpartition(SPEC_SEPARATOR)
    if not sep:
        return spec, None
    return image, query or None


@dataclass(frozen=True)
class ServedImage:
    """Bytes produced for one inbound generation request."""

    content: bytes
    media_type: str


class ResolvedPicture(ABC):
    """Handle to a derived image produced by a generator."""

    @property
    @abstractmethod
    def spec(self) -> str:
        """The spec string this picture was resolved from."""

    @property
    @abstractmethod
    def media_type(self) -> str:
        """MIME type of the encoded output."""

    @abstractmethod
    def get_url(self) -> str | None:
        """Return a servable URL for the picture, or ``None``."""

    @abstractmethod
    def get_storage_path(self) -> Path:
        """Return the path the derived file is (or will be) stored at."""

    @abstractmethod
    def save(self, path: Path | None = None) -> Path:
        """Render and write the derived image, returning the written path."""

    @abstractmethod
    def output(self) -> bytes:
        """Render the derived image and return its encoded bytes."""


class PictureLoader(ABC):
    """Loads source images for a generator."""

    @abstractmethod
    def load(self, source: Path) -> Image.Image:
        """Open ``source`` and return a PIL image.

        Raises
        ------
        GenerationError
            If the source cannot be read.
        """

    def exists(self, source: Path) -> bool:
        return source.is_file()


class Generator(ABC):
    """Abstract image generation backend.

    Implementations own every piece of mutable state involved in producing
    images: the on-disk cache, the signing key and the fallback identifier.
    The facade treats them as opaque and only calls the methods below.

    Notes
    -----
    - ``load_picture`` must be cheap when the derived file is already cached.
    - Request parameters are passed explicitly; implementations must not read
      ambient request state.
    """

    @abstractmethod
    def load_picture(self, spec: str) -> ResolvedPicture:
        """Resolve ``spec`` into a picture handle.

        Raises
        ------
        GenerationError
            If the spec cannot be produced.
        SecurityError
            If the spec fails signature verification.
        """

    @abstractmethod
    def get_path(self, picture: ResolvedPicture) -> Path:
        """Return the storage path of ``picture``."""

    @abstractmethod
    def get_storage_url(self) -> str:
        """Return the base URL the storage directory is published under."""

    @abstractmethod
    def get_fallback_image(self) -> str | None:
        """Return the configured fallback image identifier, if any."""

    @abstractmethod
    def set_fallback_image(self, image: str | None) -> None:
        """Configure the fallback image identifier."""

    @abstractmethod
    def set_picture_loader(self, loader: PictureLoader) -> None:
        """Replace the loader used to open source images."""

    @abstractmethod
    def get_request_image_query(self, params: Mapping[str, str]) -> str:
        """Return the raw spec carried by an inbound request's parameters."""

    @abstractmethod
    def server_response(self, params: Mapping[str, str]) -> ServedImage:
        """Handle one inbound generation request end to end.

        Verifies the request, materialises the derived image if it is not
        cached yet and returns its bytes.

        Raises
        ------
        GenerationError
            If the image cannot be produced.
        SecurityError
            If the request is not correctly signed.
        """
