"""Command line entry point for the pweb server.

Every option can also be given through a PWEB_* environment variable or a
JSON config file; the command line wins over both.
"""

import argparse
import logging
import sys

from .config import ServerConfig, parse_proxy_routes
from .server import Server

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="pweb",
        description="Serve a document root and reverse-proxy selected paths.",
    )
    parser.add_argument(
        "--docroot", help="The document root to serve requests from (default: .)",
    )
    parser.add_argument(
        "--bind", help="The address to serve requests from, as '[<host>]:<port>' (default: :8080)",
    )
    parser.add_argument("--quiet", action="store_true", default=None, help="Be less verbose.")
    parser.add_argument("--verbose", action="store_true", default=None, help="Be more verbose.")
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debugging mode.")
    parser.add_argument(
        "--strict", action="store_true", default=None, help="Refuse to list directories.",
    )
    parser.add_argument(
        "--proxy",
        action="append",
        default=[],
        metavar="ROUTES",
        help="Reverse-proxy routes, as '<path>=<url>[,<path>=<url>]'. May repeat.",
    )
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--timeout", type=float, help="Socket and upstream timeout in seconds")
    return parser


def load_config(args) -> ServerConfig:
    overrides = {
        "docroot": args.docroot,
        "bind": args.bind,
        "quiet": args.quiet,
        "verbose": args.verbose,
        "debug": args.debug,
        "strict": args.strict,
        "timeout": args.timeout,
    }
    if args.proxy:
        overrides["proxy"] = parse_proxy_routes(args.proxy)
    return ServerConfig(args.config, overrides=overrides)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
        server = Server(config)
    except ValueError as e:
        parser.exit(2, f"{parser.prog}: {e}\n")

    logging.basicConfig(
        level=logging.DEBUG if config.options.is_debug() else logging.INFO,
        format="%(asctime)s %(message)s",
        stream=sys.stderr,
    )

    try:
        server.start()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except OSError as e:
        parser.exit(1, f"{parser.prog}: {e}\n")
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
