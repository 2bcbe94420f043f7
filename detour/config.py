"""Config loading for Detour.

Reads `.detour/config.yaml` (or `~/.detour/config.yaml`).
Raises SystemExit on parse errors or missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. DETOUR_CONFIG environment variable (if set)
  3. `.detour/config.yaml` (working directory — for development)
  4. `~/.detour/config.yaml` (home directory)

Environment variable overrides:
  DETOUR_PORT          — overrides server.port
  DETOUR_STORAGE_PATH  — overrides storage.path

Example:

    version: 1
    server:
      host: 127.0.0.1
      port: 4343
    sentinel_url: http://127.0.0.1:4343/blocked   # optional; default follows server host/port
    storage:
      path: ~/.detour/storage.db
    rules_file: ~/.detour/rules.yaml
    bridge:
      url: http://127.0.0.1:4344
      timeout_s: 5
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import yaml

from detour.constants import (
    DEFAULT_BRIDGE_TIMEOUT_S,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_STORAGE_PATH,
    SENTINEL_PATH,
)
from detour.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (DETOUR_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".detour/config.yaml",
    os.path.expanduser("~/.detour/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding configuration."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class StorageConfig:
    """Persistent store location. ":memory:" keeps everything in-process."""

    path: str = DEFAULT_STORAGE_PATH


@dataclass
class BridgeConfig:
    """Browser-side tab bridge.

    url:       Base URL of the bridge. None → navigation intents are logged only.
    timeout_s: httpx timeout for each navigation call.
    """

    url: Optional[str] = None
    timeout_s: float = DEFAULT_BRIDGE_TIMEOUT_S


@dataclass
class Config:
    """Root configuration object populated from .detour/config.yaml.

    All fields have safe defaults — Detour can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    # None until resolved: derived from the final server host/port unless set.
    sentinel_url: Optional[str] = None
    rules_file: Optional[str] = None
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On an empty sentinel_url or a non-positive bridge timeout.
        """
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", DEFAULT_HOST),
            port=server_raw.get("port", DEFAULT_PORT),
        )

        storage_raw = raw.get("storage") or {}
        storage = StorageConfig(path=storage_raw.get("path", DEFAULT_STORAGE_PATH))

        bridge_raw = raw.get("bridge") or {}
        bridge = BridgeConfig(
            url=bridge_raw.get("url"),
            timeout_s=bridge_raw.get("timeout_s", DEFAULT_BRIDGE_TIMEOUT_S),
        )
        if not isinstance(bridge.timeout_s, (int, float)) or bridge.timeout_s <= 0:
            _fail(f"Invalid bridge.timeout_s: {bridge.timeout_s!r}. Must be a positive number.")

        sentinel_url = raw.get("sentinel_url")
        if sentinel_url is not None and (not isinstance(sentinel_url, str) or not sentinel_url):
            # An empty sentinel prefix-matches every URL.
            _fail("Invalid sentinel_url: must be a non-empty URL string.")

        rules_file = raw.get("rules_file")
        if rules_file is not None:
            rules_file = os.path.expanduser(str(rules_file))

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            storage=storage,
            bridge=bridge,
            sentinel_url=sentinel_url,
            rules_file=rules_file,
            path=path,
        )


def _fail(message: str) -> None:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate Detour configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).
    Env overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid field value, or invalid ``DETOUR_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("DETOUR_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        _resolve_sentinel(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"Failed to parse {found_path}: {exc}\n"
            "Detour refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _fail(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )

    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)
    _resolve_sentinel(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: Detour is configured to bind on 0.0.0.0 (all interfaces). "
            "Anyone on the network can edit rules and read the audit log. "
            "Recommended: use server.host: '127.0.0.1'."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        sentinel_url=config.sentinel_url,
        rules_file=config.rules_file,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If DETOUR_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("DETOUR_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _fail(f"DETOUR_PORT environment variable is not a valid integer: '{env_port}'")

    env_storage = os.environ.get("DETOUR_STORAGE_PATH")
    if env_storage:
        config.storage.path = env_storage


# Wildcard bind addresses are not browsable; the blocked page is reached on loopback.
_WILDCARD_HOSTS = frozenset({"", "0.0.0.0", "::"})


def default_sentinel_url(host: str, port: int) -> str:
    """The URL of Detour's own blocked page for a given bind address."""
    if host in _WILDCARD_HOSTS:
        host = DEFAULT_HOST
    elif ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"http://{host}:{port}{SENTINEL_PATH}"


def _resolve_sentinel(config: Config) -> None:
    """Fill in sentinel_url from the final host/port when it was not configured.

    Runs after env overrides so DETOUR_PORT moves the sentinel with the server.
    """
    if config.sentinel_url is None:
        config.sentinel_url = default_sentinel_url(config.server.host, config.server.port)
