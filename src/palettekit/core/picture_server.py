"""Default image generator backed by Pillow and a local storage directory.

:class:`PictureServer` implements :class:`~palettekit.core.generator.Generator`:

- Source images are resolved relative to ``base_path`` (the website root) and
  may not escape it.  The configured fallback image may be absolute.
- Derived images are cached in ``storage_path`` under a name derived from the
  spec, and published under ``storage_url``.
- Until a derived image is cached, its URL points at the generator endpoint
  (``route_path``) with the spec and an HMAC signing token, so only specs the
  application itself produced can trigger generation.

URL shapes
----------
::

    cached      {storage_url}/{stem}.{digest}.{ext}
    uncached    {route_path}?imageQuery={spec}&token={hmac}

When ``storage_url`` is absolute the generator URL reuses its origin.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import urlencode, urlsplit

from .errors import ConfigurationError, GenerationError, SecurityError
from .generator import (
    Generator,
    PictureLoader,
    ResolvedPicture,
    ServedImage,
    split_spec,
)
from .picture import FilesystemPictureLoader, Picture, parse_query

logger = logging.getLogger(__name__)

QUERY_PARAM = "imageQuery"
TOKEN_PARAM = "token"
TOKEN_LENGTH = 16

ABSOLUTE_URL_PREFIXES = ("//", "http://", "https://")


def is_absolute_url(url: str) -> bool:
    return url.startswith(ABSOLUTE_URL_PREFIXES)


class PictureServer(Generator):
    """Pillow generator with an on-disk cache and signed generation URLs.

    Attributes:
        storage_path: Directory holding generated images.
        storage_url: URL the storage directory is published under.
        base_path: Root directory source images are resolved against.
        route_path: Path of the generator endpoint.
        picture_loader: Loader used to open source images.
    """

    def __init__(
        self,
        storage_path: str | Path,
        storage_url: str,
        base_path: str | Path | None,
        signing_key: str,
        route_path: str = "/palette",
    ) -> None:
        if not signing_key:
            raise ConfigurationError("PictureServer requires a signing key")

        self.storage_path = Path(storage_path)
        self.storage_url = storage_url.rstrip("/")
        self.base_path = Path(base_path) if base_path else Path.cwd()
        self.route_path = route_path
        self.picture_loader: PictureLoader = FilesystemPictureLoader()

        self._signing_key = signing_key.encode("utf-8")
        self._fallback_image: str | None = None

        self.storage_path.mkdir(parents=True, exist_ok=True)
        logger.info(
            f"PictureServer storing images in {self.storage_path} published at {self.storage_url}"
        )

    # -- Generator interface ----------------------------------------------

    def load_picture(self, spec: str) -> Picture:
        image, query = split_spec(spec)
        if not image:
            raise GenerationError(f"Image query has no image identifier: '{spec}'")

        source = self._resolve_source(image)
        if not self.picture_loader.exists(source):
            raise GenerationError(f"Source image not found: {image}")

        # Queries arrive already expanded; template names are not resolved here.
        return Picture(self, spec, source, parse_query(query))

    def get_path(self, picture: ResolvedPicture) -> Path:
        return picture.get_storage_path()

    def get_storage_url(self) -> str:
        return self.storage_url

    def get_fallback_image(self) -> str | None:
        return self._fallback_image

    def set_fallback_image(self, image: str | None) -> None:
        self._fallback_image = image or None

    def set_picture_loader(self, loader: PictureLoader) -> None:
        self.picture_loader = loader

    def get_request_image_query(self, params: Mapping[str, str]) -> str:
        return params.get(QUERY_PARAM) or ""

    def server_response(self, params: Mapping[str, str]) -> ServedImage:
        spec = self.get_request_image_query(params)
        if not spec:
            raise GenerationError(f"Missing {QUERY_PARAM} parameter")

        self.verify(spec, params.get(TOKEN_PARAM))

        picture = self.load_picture(spec)
        path = self.get_path(picture)
        if not path.is_file():
            picture.save(path)

        return ServedImage(content=path.read_bytes(), media_type=picture.media_type)

    # -- Signing ----------------------------------------------------------

    def sign(self, spec: str) -> str:
        digest = hmac.new(self._signing_key, spec.encode("utf-8"), hashlib.sha256)
        return digest.hexdigest()[:TOKEN_LENGTH]

    def verify(self, spec: str, token: str | None) -> None:
        """Check the signing token of an inbound request.

        Raises:
            SecurityError: If the token is missing or does not match.
        """
        if not token or not hmac.compare_digest(self.sign(spec), token):
            raise SecurityError(f"Invalid signing token for image query '{spec}'")

    # -- URLs -------------------------------------------------------------

    def generator_url(self) -> str:
        """URL of the generator endpoint, sharing the storage URL's origin."""
        if is_absolute_url(self.storage_url):
            parts = urlsplit(self.storage_url)
            origin = f"{parts.scheme}://{parts.netloc}" if parts.scheme else f"//{parts.netloc}"
            return origin + self.route_path
        return self.route_path

    def picture_url(self, picture: Picture) -> str:
        if picture.get_storage_path().is_file():
            return f"{self.storage_url}/{picture.filename}"

        query = urlencode({QUERY_PARAM: picture.spec, TOKEN_PARAM: self.sign(picture.spec)})
        return f"{self.generator_url()}?{query}"

    # -- Helpers ----------------------------------------------------------

    def _resolve_source(self, image: str) -> Path:
        if self._fallback_image and image == self._fallback_image and Path(image).is_absolute():
            return Path(image)

        root = self.base_path.resolve()
        source = (root / image.lstrip("/")).resolve()
        if not source.is_relative_to(root):
            raise GenerationError(f"Image path escapes the base directory: {image}")
        return source
