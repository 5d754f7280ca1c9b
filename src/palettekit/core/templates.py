"""Named shortcuts for image transformation queries.

A template maps a short name to a literal query string so that callers can
write ``"photo.jpg@thumb"`` instead of ``"photo.jpg@Resize;120;120;fill"``.

Lookup is by exact name only.  Anything that is not a registered name is
treated as a literal query and passed through untouched, which assumes that
template names and literal query syntax never collide.

Usage
-----
    >>> registry = QueryTemplateRegistry()
    >>> registry.define("thumb", "Resize;120;120;fill")
    >>> registry.expand("thumb")
    'Resize;120;120;fill'
    >>> registry.expand("Resize;64;64")
    'Resize;64;64'
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class QueryTemplateRegistry:
    """Registry of named query templates.

    Templates are defined during configuration and the registry is frozen
    once the owning service has finished initialising.  After that point it
    is read-only and safe to share between requests without locking.
    """

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._templates: dict[str, str] = {}
        self._frozen = False

        for name, query in (templates or {}).items():
            self.define(name, query)

    def define(self, name: str, query: str) -> None:
        """Register a template.  Redefining a name overwrites it.

        Args:
            name: Template name used in place of a query.
            query: Literal query the name expands to.

        Raises:
            ConfigurationError: If the registry is frozen, or the name or
                query is empty.
        """
        if self._frozen:
            raise ConfigurationError(
                f"Cannot define template '{name}': registry is frozen after startup"
            )
        if not name or not query:
            raise ConfigurationError("Template name and query must be non-empty strings")

        if name in self._templates:
            logger.warning(f"Query template '{name}' is already defined, overwriting")

        self._templates[name] = query
        logger.debug(f"Defined query template: {name} -> {query}")

    def expand(self, query: str) -> str:
        """Return the literal query for a template name, or ``query`` itself."""
        return self._templates.get(query, query)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> list[str]:
        return list(self._templates.keys())

    def as_dict(self) -> dict[str, str]:
        return dict(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)
