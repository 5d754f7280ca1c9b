"""Pydantic response models for the palettekit API.

Models
------
PictureUrlResponse
    Body of ``GET /api/url`` — the resolved URL of an image variant.
TemplatesResponse
    Body of ``GET /api/templates`` — registered query templates.
InfoResponse
    Body of ``GET /api/info`` — service configuration summary.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from palettekit.core.models import PictureUrl


class PictureUrlResponse(BaseModel):
    """Resolved URL for an image and query.

    Attributes:
        image: Source image identifier as requested.
        query: Query or template name as requested (``None`` if omitted).
        spec: Spec string the generator resolved.
        url: URL the image variant is served from.
        media_type: MIME type of the derived image.
    """

    image: str = Field(..., description="Source image identifier.")
    query: str | None = Field(default=None, description="Requested query or template name.")
    spec: str = Field(..., description="Spec string resolved by the generator.")
    url: str = Field(..., description="URL of the derived image.")
    media_type: str = Field(..., description="MIME type of the derived image.")

    @classmethod
    def from_picture_url(cls, result: PictureUrl) -> PictureUrlResponse:
        return cls(
            image=result.image,
            query=result.query,
            spec=result.picture.spec,
            url=result.url,
            media_type=result.picture.media_type,
        )


class TemplatesResponse(BaseModel):
    """Registered query templates keyed by name."""

    templates: dict[str, str] = Field(default_factory=dict)


class InfoResponse(BaseModel):
    """Summary of the running service configuration."""

    version: str
    policy: str
    relative_urls: bool
    storage_url: str
    fallback_image: str | None = None
