"""Configuration management for palettekit.

Configuration is handled with Pydantic Settings.  Values are loaded from
environment variables with the ``PALETTE_`` prefix, allowing deployments to
configure the service without code changes.

Environment Variable Loading
----------------------------
Configuration values are loaded in the following priority order:
1. Explicit keyword arguments
2. Environment variables (``PALETTE_*`` prefix)
3. ``.env`` file in the working directory
4. Default values defined in :class:`PaletteSettings`

Example .env file::

    PALETTE_PATH=www/thumbs
    PALETTE_URL=/thumbs
    PALETTE_BASEPATH=www
    PALETTE_SIGNING_KEY=change-me
    PALETTE_FALLBACK_IMAGE=img/default.png
    PALETTE_TEMPLATES={"thumb": "Resize;120;120;fill"}
    PALETTE_HANDLE_EXCEPTIONS=palette-errors

Required Settings
-----------------
``path``, ``url`` and ``signing_key`` have no defaults.  They are optional at
the model level so that the global ``config`` instance can always be
created, and are enforced by :meth:`PaletteSettings.require` which raises
:class:`~palettekit.core.errors.ConfigurationError`.  The service factory
calls it at startup, so an incomplete configuration fails fast before any
request is served.

Exception Handling Setting
--------------------------
``handle_exceptions`` accepts:

- ``false`` — generator failures are raised
- ``true`` — failures are logged in detail to the ``palette`` channel
- any other string — only the message is logged to that channel
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

REQUIRED_SETTINGS = ("path", "url", "signing_key")


class PaletteSettings(BaseSettings):
    """Startup configuration for the palette service.

    Attributes
    ----------
    Storage:
        path : Path | None
            Directory generated images are written to (required).
        url : str | None
            URL the storage directory is published under, absolute
            (``https://cdn.example.com/thumbs``, ``//cdn.example.com/thumbs``)
            or relative (``/thumbs``) (required).
        basepath : Path | None
            Website root directory source images are resolved against.

    Generation:
        signing_key : SecretStr | None
            Secret used to sign generator URLs (required).
        fallback_image : str | None
            Image served in place of images that fail to generate.
        templates : dict[str, str]
            Named query templates.
        website_url : str | None
            Public website URL prefixed to relative image URLs when an
            absolute URL is requested.
        picture_loader : str | None
            Dotted import path of a custom ``PictureLoader`` class.
        generator : str | None
            Dotted import path of a custom ``Generator`` class.
        handle_exceptions : bool | str
            Exception handling policy (see module docstring).
        route_path : str
            Path of the generator endpoint.

    Server:
        server_host : str
        server_port : int
        log_level : str

    Notes
    -----
    Settings are frozen after initialisation.  To change values, set
    environment variables and restart the application.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PALETTE_",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    # Storage
    path: Path | None = Field(
        default=None,
        description="Directory generated images are written to",
    )
    url: str | None = Field(
        default=None,
        description="URL the storage directory is published under",
    )
    basepath: Path | None = Field(
        default=None,
        description="Website root directory source images are resolved against",
    )

    # Generation
    signing_key: SecretStr | None = Field(
        default=None,
        description="Secret used to sign generator URLs",
    )
    fallback_image: str | None = Field(
        default=None,
        description="Image identifier served when generation fails",
    )
    templates: dict[str, str] = Field(
        default_factory=dict,
        description="Named image query templates",
    )
    website_url: str | None = Field(
        default=None,
        description="Website URL used to build absolute image URLs",
    )
    picture_loader: str | None = Field(
        default=None,
        description="Dotted import path of a custom PictureLoader class",
    )
    generator: str | None = Field(
        default=None,
        description="Dotted import path of a custom Generator class",
    )
    handle_exceptions: bool | str = Field(
        default=True,
        description="false = raise, true = verbose log, string = log channel name",
    )
    route_path: str = Field(
        default="/palette",
        description="Path of the generator endpoint",
    )

    # Server
    server_host: str = Field(default="127.0.0.1", description="Server bind address")
    server_port: int = Field(default=8080, ge=1024, le=65535, description="Server port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level for the API server",
    )

    def require(self) -> None:
        """Fail fast when a required setting is missing.

        Raises:
            ConfigurationError: Naming the first missing setting.
        """
        for name in REQUIRED_SETTINGS:
            value = getattr(self, name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if value is None or value == "":
                raise ConfigurationError(
                    f"Missing required {name} parameter in palette configuration"
                )

    @property
    def signing_key_value(self) -> str | None:
        return self.signing_key.get_secret_value() if self.signing_key else None


# Global configuration instance
# Loaded once at import time from PALETTE_* environment variables and .env.
config = PaletteSettings()
