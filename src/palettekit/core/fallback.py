"""Fallback image substitution for failed generation requests.

When the generator cannot serve an inbound request and the exception policy
allows recovery, the coordinator swaps the requested image for the
configured fallback image while keeping the transformation query, so the
substitute has the same size and format the page expected::

    missing.jpg@Resize;120;120   ->   default.jpg@Resize;120;120

The substitute is rendered into storage if it is not cached yet and its
bytes are returned for the transport to send with the not-found response.
"""

from __future__ import annotations

import logging
import re

from .generator import Generator, ServedImage

logger = logging.getLogger(__name__)

# Greedy: everything up to the last separator is the image identifier.
_SPEC_PATTERN = re.compile(r".*@(.*)", re.DOTALL)


def substitute(request_query: str, fallback_image: str) -> str:
    """Replace the image part of ``request_query`` with ``fallback_image``.

    A request without a query segment becomes the bare fallback identifier.
    """
    match = _SPEC_PATTERN.fullmatch(request_query)
    if match is None:
        return fallback_image
    return f"{fallback_image}@{match.group(1)}"


class FallbackCoordinator:
    """Produces fallback image bytes on behalf of the serving entry point."""

    def __init__(self, generator: Generator) -> None:
        self.generator = generator

    def recover(self, request_query: str) -> ServedImage | None:
        """Render the fallback counterpart of ``request_query``.

        Returns:
            The fallback image, or ``None`` when no fallback is configured
            or the fallback itself could not be produced.
        """
        fallback_image = self.generator.get_fallback_image()
        if not fallback_image:
            return None

        spec = substitute(request_query, fallback_image)
        try:
            picture = self.generator.load_picture(spec)
            save_path = self.generator.get_path(picture)
            if not save_path.exists():
                picture.save(save_path)
            content = picture.output()
        except Exception as e:
            logger.warning(f"Fallback image '{spec}' could not be produced: {e}")
            return None

        logger.debug(f"Serving fallback image '{spec}' for '{request_query}'")
        return ServedImage(content=content, media_type=picture.media_type)
