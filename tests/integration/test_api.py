"""Integration tests for palettekit.api.main — FastAPI endpoints.

All tests run the real application with the bundled Pillow generator
against a temporary website root.  Tests cover:

- ``GET /api/url`` — URL resolution, templates and the ``//`` marker.
- ``GET /palette`` — signed generation, forged tokens and fallback images.
- ``GET /thumbs/...`` — cached images served from storage.
- ``GET /api/templates`` and ``GET /api/info``.
- Startup failure on incomplete configuration.
"""

from __future__ import annotations

import io
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from palettekit.api.main import create_app
from palettekit.core.config import PaletteSettings
from palettekit.core.errors import ConfigurationError
from palettekit.core.service import Palette

# ---------------------------------------------------------------------------
# URL resolution.
# ---------------------------------------------------------------------------


class TestResolveUrl:
    """Test GET /api/url."""

    def test_template_url(self, test_client):
        resp = test_client.get("/api/url", params={"image": "img/photo.jpg", "query": "thumb"})
        assert resp.status_code == 200

        data = resp.json()
        assert data["spec"] == "img/photo.jpg@Resize;20;20;fill"
        assert data["query"] == "thumb"
        assert data["media_type"] == "image/jpeg"
        assert data["url"].startswith("/palette?")

    def test_absolute_marker_uses_request_host(self, test_client):
        resp = test_client.get("/api/url", params={"image": "img/photo.jpg", "query": "//thumb"})
        assert resp.status_code == 200
        assert resp.json()["url"].startswith("//testserver/palette?")

    def test_unknown_image_is_404(self, test_client):
        resp = test_client.get("/api/url", params={"image": "img/nope.jpg", "query": "thumb"})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Image doesn't exist"

    def test_image_required(self, test_client):
        resp = test_client.get("/api/url")
        assert resp.status_code == 422

    def test_value_error_is_400(self, test_settings, mock_generator):
        mock_generator.load_picture.side_effect = ValueError("unusable image identifier")
        app = create_app(test_settings, palette=Palette(mock_generator))

        with TestClient(app) as client:
            resp = client.get("/api/url", params={"image": "img/photo.jpg"})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "unusable image identifier"


# ---------------------------------------------------------------------------
# Generator endpoint.
# ---------------------------------------------------------------------------


class TestServeImage:
    """Test GET /palette — signed generation with fallback handling."""

    def _url_for(self, client: TestClient, image: str, query: str) -> str:
        resp = client.get("/api/url", params={"image": image, "query": query})
        return resp.json()["url"]

    def test_generates_image(self, test_client):
        resp = test_client.get(self._url_for(test_client, "img/photo.jpg", "thumb"))

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/jpeg"
        assert Image.open(io.BytesIO(resp.content)).size == (20, 20)

    def test_cached_image_served_from_storage(self, test_client):
        test_client.get(self._url_for(test_client, "img/photo.jpg", "thumb"))

        cached_url = self._url_for(test_client, "img/photo.jpg", "thumb")
        assert cached_url.startswith("/thumbs/")

        resp = test_client.get(cached_url)
        assert resp.status_code == 200
        assert Image.open(io.BytesIO(resp.content)).size == (20, 20)

    def test_forged_token_is_plain_404(self, test_client):
        resp = test_client.get(
            "/palette", params={"imageQuery": "img/photo.jpg@thumb", "token": "forged"}
        )
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Image doesn't exist"}

    def test_failed_generation_serves_fallback_with_404(self, test_client):
        palette = test_client.app.state.palette
        spec = "img/gone.jpg@Resize;10;10"
        token = palette.generator.sign(spec)

        resp = test_client.get("/palette", params={"imageQuery": spec, "token": token})

        assert resp.status_code == 404
        assert resp.headers["content-type"] == "image/png"
        assert Image.open(io.BytesIO(resp.content)).size == (10, 10)

    def test_failed_generation_without_fallback(self, test_settings):
        settings = test_settings.model_copy(update={"fallback_image": None})
        with TestClient(create_app(settings)) as client:
            spec = "img/gone.jpg@Resize;10;10"
            token = client.app.state.palette.generator.sign(spec)
            resp = client.get("/palette", params={"imageQuery": spec, "token": token})

        assert resp.status_code == 404
        assert resp.json() == {"detail": "Image doesn't exist"}

    def test_throw_policy_surfaces_server_error(self, test_settings):
        settings = test_settings.model_copy(update={"handle_exceptions": False})
        with TestClient(create_app(settings), raise_server_exceptions=False) as client:
            spec = "img/gone.jpg"
            token = client.app.state.palette.generator.sign(spec)
            resp = client.get("/palette", params={"imageQuery": spec, "token": token})

        assert resp.status_code == 500


# ---------------------------------------------------------------------------
# Introspection endpoints.
# ---------------------------------------------------------------------------


class TestIntrospection:
    """Test GET /api/templates and GET /api/info."""

    def test_templates(self, test_client):
        resp = test_client.get("/api/templates")
        assert resp.status_code == 200
        assert resp.json()["templates"]["thumb"] == "Resize;20;20;fill"

    def test_info(self, test_client):
        data = test_client.get("/api/info").json()
        assert data["policy"] == "LogVerbose"
        assert data["relative_urls"] is True
        assert data["storage_url"] == "/thumbs"
        assert data["fallback_image"] == "img/default.png"


class TestStartup:
    """Verify incomplete configuration aborts startup."""

    def test_missing_signing_key(self, temp_dir):
        settings = PaletteSettings(_env_file=None, path=str(temp_dir / "t"), url="/thumbs")
        with pytest.raises(ConfigurationError, match="signing_key"):
            with TestClient(create_app(settings)):
                pass

    def test_generator_route_path_configurable(self, test_settings):
        settings = test_settings.model_copy(update={"route_path": "/img-gen"})
        with TestClient(create_app(settings)) as client:
            url = client.get(
                "/api/url", params={"image": "img/photo.jpg", "query": "Resize;5;5"}
            ).json()["url"]
            assert urlsplit(url).path == "/img-gen"
            assert client.get(url).status_code == 200
