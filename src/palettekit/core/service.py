"""The palette service: URL resolution and request serving.

:class:`Palette` is the object application code talks to.  It turns an
image identifier plus an optional transformation query into a URL (or a
picture handle), and it wraps the generator's request-serving entry point
with the configured exception policy and fallback image handling.

Resolution
----------
::

    palette.resolve("photos/cat.jpg", "thumb")
        -> template "thumb" expanded to "Resize;120;120;fill"
        -> generator.load_picture("photos/cat.jpg@Resize;120;120;fill")
        -> (picture.get_url(), picture)

A query starting with ``//`` asks :meth:`Palette.resolve_absolute` for an
absolute URL even when storage is published under a relative URL.  The
marker is a plain textual prefix: a literal query that itself starts with
``//`` cannot be expressed.

Serving
-------
:meth:`Palette.serve_request` delegates to the generator.  On failure:

1. ``SecurityError`` is logged to ``palette.security`` and turned into a
   bare :class:`ImageNotFoundError`, whatever the policy.
2. Under ``Throw`` any other failure propagates unchanged.
3. Otherwise the policy logs the failure, the fallback coordinator tries to
   produce a substitute, and :class:`ImageNotFoundError` is raised carrying
   the substitute bytes (if any).
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Mapping

from .config import PaletteSettings, config
from .errors import (
    ConfigurationError,
    ImageNotFoundError,
    ResolutionError,
    SecurityError,
)
from .fallback import FallbackCoordinator
from .generator import Generator, PictureLoader, ResolvedPicture, ServedImage, join_spec
from .models import PictureUrl
from .picture_server import PictureServer, is_absolute_url
from .policy import ExceptionPolicy, policy_from_setting, record_security_failure
from .templates import QueryTemplateRegistry

logger = logging.getLogger(__name__)

ABSOLUTE_MARKER = "//"


def import_object(dotted_path: str) -> object:
    """Import ``package.module:Name`` or ``package.module.Name``.

    Raises:
        ConfigurationError: If the module or attribute cannot be found.
    """
    module_name, sep, attr = dotted_path.partition(":")
    if not sep:
        module_name, _, attr = dotted_path.rpartition(".")
    if not module_name or not attr:
        raise ConfigurationError(f"Invalid import path: '{dotted_path}'")

    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import '{dotted_path}': {e}") from e


def build_generator(settings: PaletteSettings) -> Generator:
    """Create the generator described by ``settings``.

    A custom generator class is constructed with the same keyword arguments
    as :class:`PictureServer`.
    """
    generator_class: object = PictureServer
    if settings.generator:
        generator_class = import_object(settings.generator)
        if not isinstance(generator_class, type) or not issubclass(generator_class, Generator):
            raise ConfigurationError(f"'{settings.generator}' is not a Generator subclass")

    generator = generator_class(
        storage_path=settings.path,
        storage_url=settings.url,
        base_path=settings.basepath,
        signing_key=settings.signing_key_value,
        route_path=settings.route_path,
    )

    if settings.picture_loader:
        loader_class = import_object(settings.picture_loader)
        if not isinstance(loader_class, type) or not issubclass(loader_class, PictureLoader):
            raise ConfigurationError(f"'{settings.picture_loader}' is not a PictureLoader subclass")
        generator.set_picture_loader(loader_class())

    return generator


class Palette:
    """Facade over an image generator.

    All collaborators are fixed at construction time.  The template
    registry is frozen once the service is built, so a single instance can
    be shared across concurrent requests without locking.

    Attributes:
        templates: Named query templates.
        website_url: Prefix for absolute URLs when storage is relative.
        policy: Exception handling policy for :meth:`serve_request`.
    """

    def __init__(
        self,
        generator: Generator,
        *,
        templates: QueryTemplateRegistry | Mapping[str, str] | None = None,
        website_url: str | None = None,
        handle_exceptions: bool | str | ExceptionPolicy = True,
        fallback_image: str | None = None,
    ) -> None:
        self._generator = generator

        if isinstance(templates, QueryTemplateRegistry):
            self.templates = templates
        else:
            self.templates = QueryTemplateRegistry(templates)
        self.templates.freeze()

        if fallback_image:
            self._generator.set_fallback_image(fallback_image)

        self.website_url = website_url or None
        self.policy = policy_from_setting(handle_exceptions)
        self.is_url_relative = not is_absolute_url(generator.get_storage_url())
        self._fallback = FallbackCoordinator(generator)

        logger.info(
            f"Palette initialised (policy={self.policy.describe()}, "
            f"templates={len(self.templates)}, relative_urls={self.is_url_relative})"
        )

    @classmethod
    def from_config(
        cls,
        settings: PaletteSettings | None = None,
        generator: Generator | None = None,
    ) -> Palette:
        """Build a service from settings, failing fast on missing values.

        Args:
            settings: Settings to use; defaults to the global ``config``.
            generator: Pre-built generator; built from ``settings`` if omitted.

        Raises:
            ConfigurationError: If ``path``, ``url`` or ``signing_key`` is
                missing, or a custom class cannot be loaded.
        """
        settings = settings or config
        settings.require()

        templates = QueryTemplateRegistry(settings.templates)
        if generator is None:
            generator = build_generator(settings)

        return cls(
            generator,
            templates=templates,
            website_url=settings.website_url,
            handle_exceptions=settings.handle_exceptions,
            fallback_image=settings.fallback_image,
        )

    @property
    def generator(self) -> Generator:
        return self._generator

    # -- Resolution -------------------------------------------------------

    def __call__(self, spec: str) -> str | None:
        """Return the URL for a complete ``image@query`` spec string."""
        return self._generator.load_picture(spec).get_url()

    def resolve(self, image: str, query: str | None = None) -> tuple[str | None, ResolvedPicture]:
        """Resolve an image and optional query to ``(url, picture)``.

        Raises:
            ValueError: If ``image`` is empty.
            GenerationError: If the generator cannot load the picture.
        """
        if not image:
            raise ValueError("Image identifier must not be empty")

        if query:
            query = self.templates.expand(query)
        else:
            query = None

        picture = self._generator.load_picture(join_spec(image, query))
        return picture.get_url(), picture

    def resolve_absolute(
        self,
        image: str,
        query: str | None = None,
        host: str | None = None,
    ) -> str | None:
        """Resolve a URL, honouring the ``//`` absolute-URL marker.

        Args:
            image: Source image identifier.
            query: Query or template name, optionally prefixed with ``//``.
            host: Network address of the serving host, used for a
                protocol-relative URL when no website URL is configured.
        """
        url, _ = self._resolve_marked(image, query, host)
        return url

    def resolve_detailed(
        self,
        image: str,
        query: str | None = None,
        host: str | None = None,
    ) -> PictureUrl:
        """Strict resolution returning a :class:`PictureUrl`.

        Raises:
            ResolutionError: If no URL or no picture was produced.
        """
        url, picture = self._resolve_marked(image, query, host)
        if not url or picture is None:
            raise ResolutionError(f"Generate URL failed for '{join_spec(image, query)}'")

        return PictureUrl(image=image, query=query, picture=picture, url=url)

    def get_picture(self, image: str) -> ResolvedPicture:
        """Return the picture handle for a spec, without building a URL."""
        return self._generator.load_picture(image)

    def absolutize(self, url: str | None, host: str | None = None) -> str | None:
        """Turn a relative storage URL into an absolute one."""
        if url is None or not self.is_url_relative or is_absolute_url(url):
            return url

        if self.website_url:
            return self.website_url + url

        if not host:
            raise ValueError("A host is required to build an absolute URL without a website URL")
        return f"//{host}{url}"

    def _resolve_marked(
        self,
        image: str,
        query: str | None,
        host: str | None,
    ) -> tuple[str | None, ResolvedPicture]:
        if query and query.startswith(ABSOLUTE_MARKER):
            url, picture = self.resolve(image, query[len(ABSOLUTE_MARKER) :] or None)
            return self.absolutize(url, host), picture

        return self.resolve(image, query)

    # -- Serving ----------------------------------------------------------

    def serve_request(self, params: Mapping[str, str]) -> ServedImage:
        """Serve one inbound generation request.

        Args:
            params: Query parameters of the inbound request.

        Returns:
            The generated image.

        Raises:
            ImageNotFoundError: On any recovered failure; carries the
                fallback image when one was produced.
            Exception: The original failure, under the ``Throw`` policy.
        """
        request_query = ""
        try:
            request_query = self._generator.get_request_image_query(params)
            return self._generator.server_response(params)
        except ConfigurationError:
            raise
        except SecurityError as exc:
            record_security_failure(exc)
            raise ImageNotFoundError() from None
        except ImageNotFoundError:
            raise
        except Exception as exc:
            if self.policy.propagates:
                raise
            self.policy.record(exc)

            recovered = self._fallback.recover(request_query)
            if recovered is None:
                raise ImageNotFoundError() from exc
            raise ImageNotFoundError(recovered.content, recovered.media_type) from exc
