"""Tests for palettekit.core.picture_server — the default generator."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from palettekit.core.errors import ConfigurationError, GenerationError, SecurityError
from palettekit.core.picture_server import PictureServer

from tests.conftest import SIGNING_KEY


class TestLoadPicture:
    """Verify spec parsing and source resolution."""

    def test_loads_existing_source(self, picture_server, website_root):
        picture = picture_server.load_picture("img/photo.jpg@Resize;10;10")
        assert picture.spec == "img/photo.jpg@Resize;10;10"
        assert picture.source == (website_root / "img" / "photo.jpg").resolve()

    def test_leading_slash_is_site_relative(self, picture_server, website_root):
        picture = picture_server.load_picture("/img/photo.jpg")
        assert picture.source == (website_root / "img" / "photo.jpg").resolve()

    def test_missing_source(self, picture_server):
        with pytest.raises(GenerationError, match="not found"):
            picture_server.load_picture("img/missing.jpg@Resize;10;10")

    def test_path_traversal_rejected(self, picture_server):
        with pytest.raises(GenerationError, match="escapes"):
            picture_server.load_picture("../../etc/passwd")

    def test_empty_image_rejected(self, picture_server):
        with pytest.raises(GenerationError):
            picture_server.load_picture("@Resize;10;10")

    def test_invalid_query(self, picture_server):
        with pytest.raises(GenerationError, match="Unknown"):
            picture_server.load_picture("img/photo.jpg@Sharpen;2")

    def test_template_names_are_not_expanded(self, picture_server):
        # Template names are expanded once by the service, never here.
        with pytest.raises(GenerationError, match="Unknown"):
            picture_server.load_picture("img/photo.jpg@thumb")

    def test_absolute_fallback_image_allowed(self, picture_server, website_root):
        fallback = str((website_root / "img" / "default.png").resolve())
        picture_server.set_fallback_image(fallback)

        picture = picture_server.load_picture(f"{fallback}@Resize;10;10")
        assert str(picture.source) == fallback

    def test_requires_signing_key(self, website_root):
        with pytest.raises(ConfigurationError, match="signing key"):
            PictureServer(website_root / "thumbs", "/thumbs", website_root, "")


class TestUrls:
    """Verify cached and uncached URL shapes."""

    def test_uncached_url_points_to_generator(self, picture_server):
        picture = picture_server.load_picture("img/photo.jpg@Resize;10;10")
        url = picture.get_url()

        parts = urlsplit(url)
        params = parse_qs(parts.query)
        assert parts.path == "/palette"
        assert params["imageQuery"] == ["img/photo.jpg@Resize;10;10"]
        assert params["token"] == [picture_server.sign("img/photo.jpg@Resize;10;10")]

    def test_cached_url_points_to_storage(self, picture_server):
        picture = picture_server.load_picture("img/photo.jpg@Resize;10;10")
        picture.save()
        assert picture.get_url() == f"/thumbs/{picture.filename}"

    def test_absolute_storage_url_shares_origin(self, website_root):
        server = PictureServer(
            website_root / "thumbs", "https://cdn.example.com/thumbs/", website_root, SIGNING_KEY
        )
        url = server.load_picture("img/photo.jpg").get_url()
        assert url.startswith("https://cdn.example.com/palette?")
        assert server.get_storage_url() == "https://cdn.example.com/thumbs"

    def test_protocol_relative_storage_url(self, website_root):
        server = PictureServer(
            website_root / "thumbs", "//cdn.example.com/thumbs", website_root, SIGNING_KEY
        )
        assert server.generator_url() == "//cdn.example.com/palette"


class TestSigning:
    """Verify token generation and verification."""

    def test_token_is_stable(self, picture_server):
        assert picture_server.sign("a@b") == picture_server.sign("a@b")
        assert len(picture_server.sign("a@b")) == 16

    def test_token_depends_on_key(self, picture_server, website_root):
        other = PictureServer(website_root / "thumbs", "/thumbs", website_root, "other-key")
        assert other.sign("a@b") != picture_server.sign("a@b")

    @pytest.mark.parametrize("token", [None, "", "0000000000000000"])
    def test_bad_tokens_rejected(self, picture_server, token):
        with pytest.raises(SecurityError):
            picture_server.verify("img/photo.jpg", token)


class TestServerResponse:
    """Verify end-to-end handling of generator requests."""

    def _params(self, server: PictureServer, spec: str) -> dict[str, str]:
        return {"imageQuery": spec, "token": server.sign(spec)}

    def test_generates_and_caches(self, picture_server):
        spec = "img/photo.jpg@Resize;30;30;fill&Format;png"
        served = picture_server.server_response(self._params(picture_server, spec))

        assert served.media_type == "image/png"
        assert served.content.startswith(b"\x89PNG")
        assert picture_server.load_picture(spec).get_storage_path().is_file()

    def test_missing_query(self, picture_server):
        with pytest.raises(GenerationError, match="imageQuery"):
            picture_server.server_response({})

    def test_forged_token(self, picture_server):
        with pytest.raises(SecurityError):
            picture_server.server_response({"imageQuery": "img/photo.jpg", "token": "forged"})

    def test_missing_source_after_valid_token(self, picture_server):
        with pytest.raises(GenerationError):
            picture_server.server_response(self._params(picture_server, "img/gone.jpg"))

    def test_request_image_query_echo(self, picture_server):
        assert picture_server.get_request_image_query({"imageQuery": "a@b"}) == "a@b"
        assert picture_server.get_request_image_query({}) == ""
