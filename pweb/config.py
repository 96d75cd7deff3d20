from typing import Dict, Any, Iterable, Mapping, Optional, Tuple
from urllib.parse import urlsplit
import json
import os

from .options import Options

ENV_PREFIX = "PWEB_"

# Environment variable name -> configuration key
ENV_KEYS = {
    "BIND_ADDR": "bind",
    "DOCROOT": "docroot",
    "QUIET": "quiet",
    "VERBOSE": "verbose",
    "DEBUG": "debug",
    "STRICT": "strict",
    "PROXY": "proxy",
    "TIMEOUT": "timeout",
}

BOOLEAN_KEYS = ("quiet", "verbose", "debug", "strict")


def str_to_bool(value: Optional[str], default: bool = False) -> bool:
    """
    Interpret a string flag.

    An empty or missing value yields the default; otherwise only
    t/true/y/yes (any case) are true.
    """
    if not value:
        return default
    return value.strip().lower() in ("t", "true", "y", "yes")


def parse_proxy_routes(definitions: Iterable[str]) -> Dict[str, str]:
    """
    Parse route definitions of the form '<path>=<url>[,<path>=<url>]'.

    Args:
        definitions: Route definition strings, each possibly holding several routes

    Returns:
        Dictionary mapping path prefixes to upstream URLs

    Raises:
        ValueError: If a route is malformed
    """
    routes = {}
    for definition in definitions:
        for route in definition.split(","):
            route = route.strip()
            if not route:
                continue
            parts = route.split("=")
            if len(parts) != 2:
                raise ValueError(f"Invalid proxy route: {route}")
            routes[parts[0].strip()] = parts[1].strip()
    return normalize_proxy_routes(routes)


def normalize_proxy_routes(routes: Mapping[str, str]) -> Dict[str, str]:
    """Strip trailing slashes from prefixes and validate upstream URLs."""
    if not isinstance(routes, Mapping):
        raise ValueError("Proxy routes must map path prefixes to URLs")
    normalized = {}
    for prefix, upstream in routes.items():
        if not isinstance(prefix, str) or not isinstance(upstream, str):
            raise ValueError(f"Invalid proxy route: {prefix!r}={upstream!r}")
        if prefix and not prefix.startswith("/"):
            prefix = "/" + prefix
        parsed = urlsplit(upstream)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid upstream URL for {prefix or '/'}: {upstream}")
        normalized[prefix.rstrip("/")] = upstream
    return normalized


def parse_bind_address(address: str) -> Tuple[str, int]:
    """Split a '[<host>]:<port>' address into host and port."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid bind address: {address}")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"Invalid bind address: {address}") from None
    if not 0 <= port_number <= 65535:
        raise ValueError(f"Invalid bind address: {address}")
    return host.strip("[]"), port_number


class ServerConfig:
    """Configuration manager for the server."""

    def __init__(self, config_path: str = None,
                 environ: Optional[Mapping[str, str]] = None,
                 overrides: Optional[Mapping[str, Any]] = None):
        """
        Initialize configuration.

        Settings are layered: defaults, then the JSON config file, then
        PWEB_* environment variables, then explicit overrides.

        Args:
            config_path: Path to JSON configuration file
            environ: Environment to read PWEB_* variables from
            overrides: Values that take precedence over everything else
        """
        self.config_path = config_path
        self.config = self._load_default_config()

        if config_path:
            if not os.path.exists(config_path):
                raise ValueError(f"Config file not found: {config_path}")
            self._load_config_file()

        self._load_environment(os.environ if environ is None else environ)

        for key, value in (overrides or {}).items():
            if value is not None:
                self.config[key] = value

        self.config["proxy"] = normalize_proxy_routes(self.config["proxy"] or {})

    def _load_default_config(self) -> Dict[str, Any]:
        """Load default configuration settings."""
        return {
            "bind": ":8080",
            "docroot": ".",
            "quiet": False,
            "verbose": False,
            "debug": False,
            "strict": False,
            "proxy": {},
            "timeout": 30,
        }

    def _load_config_file(self) -> None:
        """Load configuration from JSON file."""
        try:
            with open(self.config_path, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Error loading config file: {e}")
        if not isinstance(file_config, dict):
            raise ValueError("Error loading config file: expected a JSON object")
        self.config.update(file_config)

    def _load_environment(self, environ: Mapping[str, str]) -> None:
        """Apply PWEB_* environment variables that are set and non-empty."""
        for suffix, key in ENV_KEYS.items():
            value = environ.get(ENV_PREFIX + suffix)
            if not value:
                continue
            if key in BOOLEAN_KEYS:
                self.config[key] = str_to_bool(value)
            elif key == "proxy":
                self.config[key] = parse_proxy_routes([value])
            elif key == "timeout":
                try:
                    self.config[key] = float(value)
                except ValueError:
                    raise ValueError(f"Invalid timeout: {value}") from None
            else:
                self.config[key] = value

    def get(self, key: str) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key

        Returns:
            Configuration value
        """
        return self.config.get(key)

    @property
    def options(self) -> Options:
        return Options.from_flags(
            quiet=bool(self.config["quiet"]),
            verbose=bool(self.config["verbose"]),
            debug=bool(self.config["debug"]),
            strict=bool(self.config["strict"]),
        )

    @property
    def bind_address(self) -> Tuple[str, int]:
        return parse_bind_address(str(self.config["bind"]))

    @property
    def docroot(self) -> str:
        return str(self.config["docroot"])

    @property
    def proxy_routes(self) -> Dict[str, str]:
        return dict(self.config["proxy"])

    @property
    def timeout(self) -> float:
        return float(self.config["timeout"])
