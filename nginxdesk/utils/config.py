#!/usr/bin/env python3
#
# nginxdesk/utils/config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Configuration loading and app-level defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

_log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
	"""Raised when critical configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_CONFIG_DIR = "/etc/nginx"
DEFAULT_SYSTEM_NGINX_CONF = "/etc/nginx/nginx.conf"
DEFAULT_ACME_HOME = "/root/.acme.sh"
DEFAULT_ACME_WEBROOT = "/var/www/html"
DEFAULT_CERT_LOG = "/var/log/cert-obtain.log"
DEFAULT_HTTP_CHALLENGE_TIMEOUT = 120.0  # 2 minutes
DEFAULT_DNS_CHALLENGE_TIMEOUT = 600.0   # 10 minutes, DNS propagation is slow
DEFAULT_PORT = 8080

CERT_READERS = ("auto", "openssl", "cryptography")


@dataclass(frozen=True)
class Config:
	"""Resolved runtime configuration derived from env and defaults."""
	base_dir: Path
	config_dir: Path
	data_dir: Path
	ssl_subdir: str = "ssl"
	acme_bin: str = "acme.sh"
	acme_home: Path = Path(DEFAULT_ACME_HOME)
	acme_webroot: Path = Path(DEFAULT_ACME_WEBROOT)
	acme_debug: bool = False
	http_challenge_timeout: float = DEFAULT_HTTP_CHALLENGE_TIMEOUT
	dns_challenge_timeout: float = DEFAULT_DNS_CHALLENGE_TIMEOUT
	cert_log_path: Path = Path(DEFAULT_CERT_LOG)
	system_nginx_conf: Path = Path(DEFAULT_SYSTEM_NGINX_CONF)
	nginx_bin: str = "nginx"
	openssl_bin: str = "openssl"
	cert_reader: str = "auto"
	host: str = "0.0.0.0"
	port: int = DEFAULT_PORT
	log_level: str = "INFO"
	rate_limit: bool = True

	@property
	def certs_dir(self) -> Path:
		"""Certificate subtree inside the sandboxed root."""
		return self.config_dir / self.ssl_subdir

	@property
	def locks_dir(self) -> Path:
		return self.data_dir / "locks"


def _parse_value(raw: str) -> str:
	"""Extract value, respecting quotes and stripping inline comments.

	Handles quoted values correctly (e.g. NGINXDESK_CONFIG_DIR="/srv/#1")
	and only strips comments from unquoted values.
	"""
	raw = raw.strip()
	if raw and raw[0] in ('"', "'"):
		quote = raw[0]
		end = raw.find(quote, 1)
		if end != -1:
			return raw[1:end]
		# Unterminated quote - fall through to unquoted handling
	if " #" in raw:
		raw = raw.split(" #", 1)[0]
	return raw.strip()


def load_dotenv(dotenv_path: Path | None = None) -> None:
	"""Load simple KEY=VALUE pairs from settings.env.

	Behavior:
	- Ignores blank lines and comments (# ...)
	- Handles `export KEY=VALUE` syntax
	- Respects quoted values (doesn't strip # inside quotes)
	- Does not override already-set environment variables
	"""
	project_root = Path(__file__).resolve().parents[2]
	dotenv_path = dotenv_path or (project_root / "settings.env")
	if not dotenv_path.exists():
		return
	for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
		line = raw_line.strip()
		if not line or line.startswith("#"):
			continue
		if "=" not in line:
			continue
		key, value = line.split("=", 1)
		key = key.strip()
		if key.startswith("export "):
			key = key[7:].strip()
		value = _parse_value(value)
		if not key:
			continue
		os.environ.setdefault(key, value)


def _env_bool(name: str, default: bool = False) -> bool:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_seconds(name: str, default: float) -> float:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = float(raw)
	except ValueError as exc:
		raise ConfigValidationError(f"{name} must be a number of seconds, got {raw!r}") from exc
	if value <= 0:
		raise ConfigValidationError(f"{name} must be positive, got {raw!r}")
	return value


def _resolve_root(raw: str) -> Path:
	"""Validate and canonicalize the sandboxed root once at startup."""
	path = Path(raw).expanduser()
	if not path.exists():
		raise ConfigValidationError(f"Config directory does not exist: {path}")
	if not path.is_dir():
		raise ConfigValidationError(f"Config directory is not a directory: {path}")
	return Path(os.path.realpath(path))


def load_config() -> Config:
	"""Load configuration from environment variables (optionally via settings.env)."""
	load_dotenv()
	project_root = Path(__file__).resolve().parents[2]

	config_dir = _resolve_root(os.getenv("NGINXDESK_CONFIG_DIR", DEFAULT_CONFIG_DIR))

	data_dir = Path(os.getenv("NGINXDESK_DATA_DIR", str(project_root / "data"))).resolve()
	try:
		if data_dir.exists() and not data_dir.is_dir():
			raise ConfigValidationError(f"Path exists but is not a directory: {data_dir}")
		data_dir.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		raise ConfigValidationError(f"Cannot create data directory: {exc}") from exc

	ssl_subdir = os.getenv("NGINXDESK_SSL_SUBDIR", "ssl").strip().strip("/") or "ssl"
	if ".." in Path(ssl_subdir).parts:
		raise ConfigValidationError("NGINXDESK_SSL_SUBDIR must stay inside the config directory")

	cert_reader = os.getenv("NGINXDESK_CERT_READER", "auto").strip().lower()
	if cert_reader not in CERT_READERS:
		raise ConfigValidationError(
			f"NGINXDESK_CERT_READER must be one of {', '.join(CERT_READERS)}, got {cert_reader!r}"
		)

	port_raw = os.getenv("NGINXDESK_PORT", str(DEFAULT_PORT))
	try:
		port = int(port_raw)
	except (TypeError, ValueError):
		_log.warning("Invalid NGINXDESK_PORT %r, falling back to %d", port_raw, DEFAULT_PORT)
		port = DEFAULT_PORT

	# Validate log level
	allowed_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
	log_level = os.getenv("LOG_LEVEL", "INFO").upper()
	if log_level not in allowed_levels:
		log_level = "INFO"

	return Config(
		base_dir=project_root,
		config_dir=config_dir,
		data_dir=data_dir,
		ssl_subdir=ssl_subdir,
		acme_bin=os.getenv("NGINXDESK_ACME_BIN", "acme.sh"),
		acme_home=Path(os.getenv("NGINXDESK_ACME_HOME", DEFAULT_ACME_HOME)),
		acme_webroot=Path(os.getenv("NGINXDESK_ACME_WEBROOT", DEFAULT_ACME_WEBROOT)),
		acme_debug=_env_bool("NGINXDESK_ACME_DEBUG"),
		http_challenge_timeout=_env_seconds("NGINXDESK_HTTP_CHALLENGE_TIMEOUT", DEFAULT_HTTP_CHALLENGE_TIMEOUT),
		dns_challenge_timeout=_env_seconds("NGINXDESK_DNS_CHALLENGE_TIMEOUT", DEFAULT_DNS_CHALLENGE_TIMEOUT),
		cert_log_path=Path(os.getenv("NGINXDESK_CERT_LOG", DEFAULT_CERT_LOG)),
		system_nginx_conf=Path(os.getenv("NGINXDESK_SYSTEM_NGINX_CONF", DEFAULT_SYSTEM_NGINX_CONF)),
		nginx_bin=os.getenv("NGINXDESK_NGINX_BIN", "nginx"),
		openssl_bin=os.getenv("NGINXDESK_OPENSSL_BIN", "openssl"),
		cert_reader=cert_reader,
		host=os.getenv("NGINXDESK_HOST", "0.0.0.0"),
		port=port,
		log_level=log_level,
		rate_limit=_env_bool("NGINXDESK_RATE_LIMIT", True),
	)

