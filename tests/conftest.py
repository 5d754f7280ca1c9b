"""Shared pytest fixtures for palettekit tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator as TypingGenerator
from unittest.mock import MagicMock

import pytest
from PIL import Image

from palettekit.core.config import PaletteSettings
from palettekit.core.generator import Generator, ResolvedPicture
from palettekit.core.picture_server import PictureServer
from palettekit.core.service import Palette

SIGNING_KEY = "test-signing-key"


@pytest.fixture
def temp_dir() -> TypingGenerator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def website_root(temp_dir: Path) -> Path:
    """Create a website root with a few source images.

    Layout::

        www/img/photo.jpg      200x100 red JPEG
        www/img/logo.png       64x64 RGBA PNG
        www/img/default.png    50x50 grey PNG (fallback image)
        www/img/broken.jpg     not an image
    """
    root = temp_dir / "www"
    img_dir = root / "img"
    img_dir.mkdir(parents=True)

    Image.new("RGB", (200, 100), color=(255, 0, 0)).save(img_dir / "photo.jpg")
    Image.new("RGBA", (64, 64), color=(0, 0, 255, 128)).save(img_dir / "logo.png")
    Image.new("RGB", (50, 50), color=(128, 128, 128)).save(img_dir / "default.png")
    (img_dir / "broken.jpg").write_bytes(b"not an image")

    return root


@pytest.fixture
def test_settings(temp_dir: Path, website_root: Path) -> PaletteSettings:
    """Settings pointing at the temporary website root.

    Returns:
        PaletteSettings with relative storage URL and a fallback image
    """
    return PaletteSettings(
        _env_file=None,
        path=str(website_root / "thumbs"),
        url="/thumbs",
        basepath=str(website_root),
        signing_key=SIGNING_KEY,
        fallback_image="img/default.png",
        templates={"thumb": "Resize;20;20;fill", "small": "Resize;50;50"},
        handle_exceptions=True,
    )


@pytest.fixture
def picture_server(website_root: Path) -> PictureServer:
    """Default generator over the temporary website root."""
    return PictureServer(
        storage_path=website_root / "thumbs",
        storage_url="/thumbs",
        base_path=website_root,
        signing_key=SIGNING_KEY,
    )


@pytest.fixture
def palette(test_settings: PaletteSettings) -> Palette:
    """Palette service built from ``test_settings``."""
    return Palette.from_config(test_settings)


def make_picture(spec: str, url: str | None = None) -> MagicMock:
    """Create a mock picture handle for ``spec``.

    Args:
        spec: Spec string the picture was resolved from
        url: URL to report; defaults to ``/thumbs/<spec>``

    Returns:
        MagicMock standing in for a ResolvedPicture
    """
    picture = MagicMock(spec=ResolvedPicture)
    picture.spec = spec
    picture.media_type = "image/png"
    picture.get_url.return_value = url if url is not None else f"/thumbs/{spec}"
    picture.output.return_value = f"bytes:{spec}".encode()
    return picture


@pytest.fixture
def mock_generator() -> MagicMock:
    """Mock generator with a relative storage URL.

    ``load_picture`` returns a fresh mock picture per spec, and the storage
    path of every picture reports as already existing.
    """
    generator = MagicMock(spec=Generator)
    generator.get_storage_url.return_value = "/thumbs"
    generator.get_fallback_image.return_value = None
    generator.load_picture.side_effect = lambda spec: make_picture(spec)
    generator.get_request_image_query.side_effect = lambda params: params.get("imageQuery", "")

    existing_path = MagicMock()
    existing_path.exists.return_value = True
    generator.get_path.return_value = existing_path

    return generator


@pytest.fixture
def test_client(test_settings: PaletteSettings):
    """FastAPI TestClient running the full application lifespan.

    Yields:
        TestClient bound to an app built from ``test_settings``
    """
    from fastapi.testclient import TestClient

    from palettekit.api.main import create_app

    with TestClient(create_app(test_settings)) as client:
        yield client
