"""Pillow-backed picture handle and query operations.

Query syntax understood by the bundled generator: ``&``-separated commands,
each written as ``Name;arg;arg``::

    Resize;200;150            fit inside 200x150, keep aspect ratio
    Resize;200;150;fill       cover 200x150 and centre-crop the overflow
    Resize;200;150;exact      stretch to exactly 200x150
    Crop;100;100              centre crop without scaling
    Rotate;90                 rotate counter-clockwise, canvas expands
    Grayscale
    Quality;80                encoder quality (JPEG / WEBP)
    Format;webp               png, jpg, jpeg, webp or gif

Example spec: ``"gallery/cat.jpg@Resize;320;240;fill&Quality;85"``.
"""

from __future__ import annotations

import hashlib
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import GenerationError
from .generator import PictureLoader, ResolvedPicture

if TYPE_CHECKING:
    from .picture_server import PictureServer

logger = logging.getLogger(__name__)

# Output format name -> (Pillow encoder, file extension, MIME type).
FORMATS: dict[str, tuple[str, str, str]] = {
    "png": ("PNG", "png", "image/png"),
    "jpg": ("JPEG", "jpg", "image/jpeg"),
    "jpeg": ("JPEG", "jpg", "image/jpeg"),
    "webp": ("WEBP", "webp", "image/webp"),
    "gif": ("GIF", "gif", "image/gif"),
}
DEFAULT_FORMAT = "png"
DEFAULT_QUALITY = 90

RESIZE_MODES = ("fit", "fill", "exact")


@dataclass(frozen=True)
class Operation:
    """One parsed query command."""

    name: str
    args: tuple[str, ...] = ()


@dataclass
class RenderOptions:
    """Operations and encoder options parsed from a query."""

    operations: list[Operation] = field(default_factory=list)
    format: str | None = None
    quality: int = DEFAULT_QUALITY


def _positive_int(value: str, what: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise GenerationError(f"{what} must be an integer, got '{value}'") from None
    if number <= 0:
        raise GenerationError(f"{what} must be positive, got {number}")
    return number


def _expect_args(op: Operation, minimum: int, maximum: int) -> None:
    if not minimum <= len(op.args) <= maximum:
        raise GenerationError(f"Invalid number of arguments for {op.name}: {len(op.args)}")


def parse_query(query: str | None) -> RenderOptions:
    """Parse a literal query string into render options.

    Raises:
        GenerationError: On unknown commands or malformed arguments.
    """
    options = RenderOptions()
    if not query:
        return options

    for chunk in query.split("&"):
        if not chunk.strip():
            continue
        name, *args = [part.strip() for part in chunk.split(";")]
        op = Operation(name.lower(), tuple(args))

        if op.name == "resize":
            _expect_args(op, 2, 3)
            _positive_int(op.args[0], "Resize width")
            _positive_int(op.args[1], "Resize height")
            if len(op.args) == 3 and op.args[2].lower() not in RESIZE_MODES:
                raise GenerationError(f"Unknown resize mode: {op.args[2]}")
            options.operations.append(op)
        elif op.name == "crop":
            _expect_args(op, 2, 2)
            _positive_int(op.args[0], "Crop width")
            _positive_int(op.args[1], "Crop height")
            options.operations.append(op)
        elif op.name == "rotate":
            _expect_args(op, 1, 1)
            try:
                float(op.args[0])
            except ValueError:
                raise GenerationError(f"Rotate angle must be a number, got '{op.args[0]}'") from None
            options.operations.append(op)
        elif op.name == "grayscale":
            _expect_args(op, 0, 0)
            options.operations.append(op)
        elif op.name == "quality":
            _expect_args(op, 1, 1)
            quality = _positive_int(op.args[0], "Quality")
            if quality > 100:
                raise GenerationError(f"Quality must be 1-100, got {quality}")
            options.quality = quality
        elif op.name == "format":
            _expect_args(op, 1, 1)
            fmt = op.args[0].lower()
            if fmt not in FORMATS:
                raise GenerationError(f"Unsupported output format: {op.args[0]}")
            options.format = fmt
        else:
            raise GenerationError(f"Unknown image query command: {name}")

    return options


def apply_operation(image: Image.Image, op: Operation) -> Image.Image:
    """Apply a single parsed operation to ``image``."""
    if op.name == "resize":
        size = (int(op.args[0]), int(op.args[1]))
        mode = op.args[2].lower() if len(op.args) == 3 else "fit"
        if mode == "fill":
            return ImageOps.fit(image, size)
        if mode == "exact":
            return image.resize(size)
        return ImageOps.contain(image, size)

    if op.name == "crop":
        width = min(int(op.args[0]), image.width)
        height = min(int(op.args[1]), image.height)
        left = (image.width - width) // 2
        top = (image.height - height) // 2
        return image.crop((left, top, left + width, top + height))

    if op.name == "rotate":
        return image.rotate(float(op.args[0]), expand=True)

    if op.name == "grayscale":
        return ImageOps.grayscale(image)

    raise GenerationError(f"Unknown image query command: {op.name}")


class FilesystemPictureLoader(PictureLoader):
    """Loads source images from the local file system."""

    def load(self, source: Path) -> Image.Image:
        try:
            with Image.open(source) as img:
                img.load()
                # exif_transpose returns a detached copy
                return ImageOps.exif_transpose(img)
        except FileNotFoundError:
            raise GenerationError(f"Source image not found: {source}") from None
        except (UnidentifiedImageError, OSError) as e:
            raise GenerationError(f"Cannot read source image {source}: {e}") from e


class Picture(ResolvedPicture):
    """A derived image produced by :class:`PictureServer`.

    The handle is cheap to create: nothing is decoded or rendered until
    :meth:`save` or :meth:`output` is called.
    """

    def __init__(
        self,
        server: PictureServer,
        spec: str,
        source: Path,
        options: RenderOptions,
    ) -> None:
        self._server = server
        self._spec = spec
        self.source = source
        self.options = options

        fmt = options.format or source.suffix.lstrip(".").lower()
        if fmt not in FORMATS:
            fmt = DEFAULT_FORMAT
        self._encoder, self._extension, self._media_type = FORMATS[fmt]

    @property
    def spec(self) -> str:
        return self._spec

    @property
    def media_type(self) -> str:
        return self._media_type

    @property
    def filename(self) -> str:
        """Cache file name: source stem plus a digest of the full spec."""
        digest = hashlib.sha1(self._spec.encode("utf-8")).hexdigest()[:16]
        return f"{self.source.stem}.{digest}.{self._extension}"

    def get_url(self) -> str | None:
        return self._server.picture_url(self)

    def get_storage_path(self) -> Path:
        return self._server.storage_path / self.filename

    def render(self) -> Image.Image:
        """Load the source and apply every query operation in order."""
        image = self._server.picture_loader.load(self.source)
        for op in self.options.operations:
            image = apply_operation(image, op)
        return image

    def _encode(self, target) -> None:
        image = self.render()
        if self._encoder == "JPEG" and image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        params: dict = {}
        if self._encoder in ("JPEG", "WEBP"):
            params["quality"] = self.options.quality
        image.save(target, format=self._encoder, **params)

    def save(self, path: Path | None = None) -> Path:
        target = Path(path) if path is not None else self.get_storage_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._encode(target)
        except (OSError, ValueError) as e:
            raise GenerationError(f"Cannot save image {self._spec}: {e}") from e

        logger.debug(f"Saved generated image: {target}")
        return target

    def output(self) -> bytes:
        cached = self.get_storage_path()
        if cached.is_file():
            return cached.read_bytes()

        buffer = io.BytesIO()
        try:
            self._encode(buffer)
        except (OSError, ValueError) as e:
            raise GenerationError(f"Cannot render image {self._spec}: {e}") from e
        return buffer.getvalue()

    def __repr__(self) -> str:
        return f"Picture(spec={self._spec!r})"
