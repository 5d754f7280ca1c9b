"""palettekit — FastAPI Application.

This module exposes the palette service over HTTP.  It defines the
``create_app()`` factory, the module-level ``app`` instance built from the
global configuration, and the ``main()`` CLI function that launches uvicorn.

Architecture
------------
- **Configuration** comes from :data:`~palettekit.core.config.config`
  (``PALETTE_*`` environment variables) unless settings are passed to
  :func:`create_app`.
- **The palette service** is built once in the lifespan handler and stored
  on ``app.state.palette``.  A missing required setting aborts startup with
  :class:`~palettekit.core.errors.ConfigurationError`.
- **Cached images** are served straight from the storage directory by
  ``StaticFiles`` when the storage URL is relative.
- **Uncached images** are generated by the generator endpoint
  (``route_path``).  Failures surface as 404; when a fallback image could be
  produced it is sent as the body of that 404.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``{route_path}``              Generate and serve a signed image
GET       ``/api/url``                  Resolve an image URL
GET       ``/api/templates``            Registered query templates
GET       ``/api/info``                 Service configuration summary
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    palettekit

Direct invocation::

    python -m palettekit.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from palettekit import __version__
from palettekit.api.models import InfoResponse, PictureUrlResponse, TemplatesResponse
from palettekit.core.config import PaletteSettings, config
from palettekit.core.errors import (
    NOT_FOUND_MESSAGE,
    GenerationError,
    ImageNotFoundError,
    ResolutionError,
)
from palettekit.core.picture_server import is_absolute_url
from palettekit.core.service import Palette

logger = logging.getLogger(__name__)


def _get_palette(request: Request) -> Palette:
    return request.app.state.palette


# ---------------------------------------------------------------------------
# Route handlers.
#
# Handlers are plain ``def`` functions: resolution and generation do blocking
# file I/O and run in FastAPI's threadpool.
# ---------------------------------------------------------------------------


def serve_image(request: Request) -> Response:
    """Generate (if needed) and return the image named by ``imageQuery``.

    Query parameters are passed to the generator unchanged; it verifies the
    signing token before producing anything.

    Returns:
        The encoded image.

    Raises:
        ImageNotFoundError: Mapped to 404 by the application's exception
            handler.
    """
    palette = _get_palette(request)
    served = palette.serve_request(dict(request.query_params))
    return Response(content=served.content, media_type=served.media_type)


def get_url(
    request: Request,
    image: str = Query(..., min_length=1, description="Source image identifier."),
    query: str | None = Query(default=None, description="Query or template name."),
) -> PictureUrlResponse:
    """Resolve the URL of an image variant.

    A query prefixed with ``//`` returns an absolute URL; when no website URL
    is configured the request's own host is used.

    Raises:
        HTTPException: 400 for an unusable image or query, 404 if the
            image cannot be resolved.
    """
    palette = _get_palette(request)
    try:
        result = palette.resolve_detailed(image, query, host=request.url.netloc)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except (GenerationError, ResolutionError) as e:
        logger.info(f"URL resolution failed for {image!r} / {query!r}: {e}")
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE) from None
    return PictureUrlResponse.from_picture_url(result)


def get_templates(request: Request) -> TemplatesResponse:
    """Return all registered query templates."""
    return TemplatesResponse(templates=_get_palette(request).templates.as_dict())


def get_info(request: Request) -> InfoResponse:
    """Return a summary of the running configuration."""
    palette = _get_palette(request)
    return InfoResponse(
        version=__version__,
        policy=palette.policy.describe(),
        relative_urls=palette.is_url_relative,
        storage_url=palette.generator.get_storage_url(),
        fallback_image=palette.generator.get_fallback_image(),
    )


async def image_not_found_handler(request: Request, exc: ImageNotFoundError) -> Response:
    """Send 404, with the fallback image as body when one was produced."""
    if exc.has_body:
        return Response(content=exc.body, status_code=404, media_type=exc.media_type)
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: PaletteSettings | None = None,
    palette: Palette | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to the global ``config``.
        palette: Pre-built service.  When omitted the service is built from
            ``settings`` during startup.

    Returns:
        The configured application.
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # --- Startup -------------------------------------------------------
        if getattr(app.state, "palette", None) is None:
            app.state.palette = Palette.from_config(settings)
        logger.info("Palette service ready.")

        yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        logger.info("Palette service stopped.")

    app = FastAPI(
        title="palettekit",
        description="Image URL resolution with on-demand thumbnail generation.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.palette = palette

    app.add_exception_handler(ImageNotFoundError, image_not_found_handler)

    app.add_api_route(settings.route_path, serve_image, methods=["GET"])
    app.add_api_route("/api/url", get_url, methods=["GET"], response_model=PictureUrlResponse)
    app.add_api_route("/api/templates", get_templates, methods=["GET"])
    app.add_api_route("/api/info", get_info, methods=["GET"])

    # Serve cached images directly when storage is published on this host.
    mount_path = (settings.url or "").strip("/")
    if settings.path and mount_path and not is_absolute_url(settings.url):
        app.mount(
            "/" + mount_path,
            StaticFiles(directory=str(settings.path), check_dir=False),
            name="storage",
        )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~palettekit.core.config.config`
    (``PALETTE_SERVER_HOST``, ``PALETTE_SERVER_PORT``, ``PALETTE_LOG_LEVEL``).

    This function is registered as the ``palettekit`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "palettekit.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
