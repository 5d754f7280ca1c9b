"""Result types returned by the palette service."""

from __future__ import annotations

from dataclasses import dataclass

from .generator import ResolvedPicture


@dataclass(frozen=True)
class PictureUrl:
    """A fully resolved picture together with the URL it is served from.

    Produced by :meth:`Palette.resolve_detailed`; the picture handle is owned
    by the generator and should not be kept beyond the current request.
    """

    image: str
    query: str | None
    picture: ResolvedPicture
    url: str

    def __str__(self) -> str:
        return self.url
