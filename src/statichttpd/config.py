"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the static file server.

The transaction engine only ever sees a ServerConfiguration value. How that
value is produced (a properties file, a test fixture, code) is not its
concern.

=============================================================================
CONFIGURATION FILE
=============================================================================

The server reads a properties-style file, one "key = value" per line:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  # jhttpd.cfg                                                        │
    │  port = 8443                                                         │
    │  docroot = /srv/www                                                  │
    │  secure = true                                                       │
    │  keyfile = /etc/statichttpd/server.pem                               │
    │  passphrase = changeit                                               │
    │  threads = 8                                                         │
    └─────────────────────────────────────────────────────────────────────┘

    port        Required. TCP port to listen on.
    docroot     Required. Directory that request paths are resolved against.
    secure      "true" enables TLS. Anything else (or absent) is plain TCP.
    keyfile     PEM key store (certificate chain + private key). TLS only.
    passphrase  Passphrase for an encrypted private key. TLS only.
    threads     Worker thread count. Defaults to the number of CPUs.
    host        Bind address (default 0.0.0.0).
    backlog     listen() backlog (default 128).
    loglevel    DEBUG, INFO, WARNING or ERROR (default INFO).

Both "=" and ":" work as separators and lines starting with "#" or ";" are
comments. Keys are case-insensitive and may appear only once.

=============================================================================
FAIL-FAST
=============================================================================

Every problem with the configuration surfaces as ConfigurationError before
the server binds a socket. The CLI turns that into a non-zero exit.

=============================================================================
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_CONFIG_FILE = "jhttpd.cfg"

# configparser needs a section header; properties files don't have one.
_SECTION = "server"


class ConfigurationError(Exception):
    """
    Raised when the server cannot be configured.

    Covers unparsable or missing values and unusable TLS key material.
    Always fatal at startup.
    """


def default_worker_count() -> int:
    """Number of worker threads to use when the configuration names none."""
    return os.cpu_count() or 1


@dataclass(frozen=True)
class ServerConfiguration:
    """
    Configuration for the static file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port, backlog

    CONTENT
    - document_root

    TLS
    - secure, key_file, key_passphrase

    THREADING
    - worker_count

    LOGGING
    - log_level

    =========================================================================

    Frozen: the value is shared by every worker thread for the lifetime of
    the process and nothing may change it after startup.
    """

    port: int
    """The TCP port to listen on."""

    document_root: Path
    """
    Base directory for every request path.
    Stored absolute, but NOT resolved: symlinks and ".." are left alone.
    """

    secure: bool = False
    """Serve over TLS instead of plain TCP."""

    key_file: Optional[Path] = None
    """PEM file holding the certificate chain and private key."""

    key_passphrase: Optional[str] = field(default=None, repr=False)
    """Passphrase for the private key. Kept out of repr() so it never hits logs."""

    worker_count: int = field(default_factory=default_worker_count)
    """
    Number of worker threads, i.e. connections served at the same time.
    Further connections wait in the pool's queue.
    """

    host: str = "0.0.0.0"
    """Bind address. "0.0.0.0" = all interfaces."""

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)."""

    def __post_init__(self):
        # Normalize paths once so every consumer sees absolute Path objects.
        object.__setattr__(self, "document_root", Path(self.document_root).absolute())
        if self.key_file is not None:
            object.__setattr__(self, "key_file", Path(self.key_file).absolute())

    @property
    def scheme(self) -> str:
        """URL scheme this configuration serves."""
        return "https" if self.secure else "http"

    @classmethod
    def from_properties(cls, path: str | os.PathLike) -> "ServerConfiguration":
        """
        Load configuration from a properties file.

        Args:
            path: Path to the properties file.

        Returns:
            The loaded configuration (not yet validated).

        Raises:
            ConfigurationError: If the file cannot be read, a required key is
                                missing, or a number cannot be parsed.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
        return cls.from_properties_text(text)

    @classmethod
    def from_properties_text(cls, text: str) -> "ServerConfiguration":
        """Parse configuration from the text of a properties file."""
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read_string(f"[{_SECTION}]\n{text}")
        except configparser.Error as e:
            raise ConfigurationError(f"Malformed configuration: {e}") from e

        values = parser[_SECTION]

        for required in ("port", "docroot"):
            if not values.get(required):
                raise ConfigurationError(f"Missing required setting: {required}")

        kwargs = {
            "port": _parse_int(values, "port"),
            "document_root": Path(values["docroot"]),
            "secure": values.get("secure", "").strip().lower() == "true",
        }

        if values.get("keyfile"):
            kwargs["key_file"] = Path(values["keyfile"])
        if values.get("passphrase") is not None:
            kwargs["key_passphrase"] = values["passphrase"]
        if values.get("threads"):
            kwargs["worker_count"] = _parse_int(values, "threads")
        if values.get("host"):
            kwargs["host"] = values["host"]
        if values.get("backlog"):
            kwargs["backlog"] = _parse_int(values, "backlog")
        if values.get("loglevel"):
            kwargs["log_level"] = values["loglevel"].upper()

        return cls(**kwargs)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by the server at construction time, so a broken config is
        reported before anything is bound or started.

        Raises:
            ConfigurationError: On the first invalid value found.
        """
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.worker_count < 1:
            raise ConfigurationError("worker_count must be >= 1")

        if self.backlog < 1:
            raise ConfigurationError("backlog must be >= 1")

        if not self.document_root.is_dir():
            raise ConfigurationError(f"Document root is not a directory: {self.document_root}")

        if self.secure and self.key_file is None:
            raise ConfigurationError("secure=true requires a keyfile")


def _parse_int(values: configparser.SectionProxy, key: str) -> int:
    try:
        return int(values[key].strip())
    except ValueError:
        raise ConfigurationError(f"Invalid value for {key}: {values[key]!r}") from None
