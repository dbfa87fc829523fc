"""
=============================================================================
STATICHTTPD CLI ENTRY POINT
=============================================================================

    # Use ./jhttpd.cfg
    python -m statichttpd

    # Use another configuration file
    python -m statichttpd /etc/statichttpd/jhttpd.cfg

All server settings come from the configuration file. The command line
only says WHICH file.

Exit status:
    0   server stopped (Ctrl+C)
    1   configuration or startup error

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import ServerConfiguration, ConfigurationError, DEFAULT_CONFIG_FILE
from .core import TransportError
from .server import StaticFileServer


logger = logging.getLogger("statichttpd")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="statichttpd",
        description="Minimal static file HTTP server",
    )

    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_FILE,
        help=f"Configuration file (default: {DEFAULT_CONFIG_FILE})",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"statichttpd {__version__}",
    )

    args = parser.parse_args(argv)

    try:
        config = ServerConfiguration.from_properties(args.config)
        server = StaticFileServer(config)
        server.run()
    except (ConfigurationError, TransportError) as e:
        # The server never got to configure logging; make sure this shows
        logging.basicConfig(format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        logger.error(f"Startup failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
