#!/usr/bin/env python3
#
# nginxdesk/main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI application factory and startup lifecycle wiring."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .api import certificates as certificates_api
from .api import files as files_api
from .api import logs as logs_api
from .api import nginx as nginx_api
from .certs import CertificateInventoryScanner, CertificateIssuanceOrchestrator, OperationLog, make_reader
from .errors import InvalidRequest, NginxDeskError
from .nginx import LogDirectiveLocator
from .sandbox import PathGuard, SandboxedFileStore
from .utils.config import Config, load_config
from .utils.rate_limit import limiter
from .utils.request_id import RequestIDLogFilter, RequestIDMiddleware

_log = logging.getLogger(__name__)

# ANSI color codes for log levels (if TTY)
_LOG_COLORS = {
	"DEBUG": "\033[36m",    # Cyan
	"INFO": "\033[32m",     # Green
	"WARNING": "\033[33m",  # Yellow
	"ERROR": "\033[31m",    # Red
	"CRITICAL": "\033[35m", # Magenta
}
_RESET = "\033[0m"
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | [%(request_id)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ColoredFormatter(logging.Formatter):
	"""Custom formatter that adds color to log levels in TTY."""

	def format(self, record):
		orig_levelname = record.levelname
		if orig_levelname in _LOG_COLORS:
			record.levelname = f"{_LOG_COLORS[orig_levelname]}{orig_levelname:<8}{_RESET}"
		else:
			record.levelname = f"{orig_levelname:<8}"
		try:
			return super().format(record)
		finally:
			record.levelname = orig_levelname


def _setup_logging(log_level: str) -> None:
	"""Configure unified logging for the entire application."""
	level = getattr(logging, log_level, logging.INFO)

	if sys.stdout.isatty():
		formatter: logging.Formatter = _ColoredFormatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)
	else:
		formatter = logging.Formatter(
			fmt=_LOG_FORMAT.replace("%(levelname)s", "%(levelname)-8s"),
			datefmt=_DATE_FORMAT,
		)

	# force=True removes any pre-existing handlers (e.g. from uvicorn)
	# so every logger inherits the same format.
	logging.basicConfig(
		level=level,
		handlers=[logging.StreamHandler(sys.stdout)],
		force=True,
	)
	for handler in logging.root.handlers:
		handler.setFormatter(formatter)
		handler.addFilter(RequestIDLogFilter())

	# Make sure uvicorn loggers use the root handler & level
	for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
		logger = logging.getLogger(name)
		logger.handlers.clear()
		logger.setLevel(level)
		logger.propagate = True

	for name in ("httpcore", "httpx", "watchfiles"):
		logging.getLogger(name).setLevel(logging.WARNING)


@asynccontextmanager
async def _lifespan(app: FastAPI):
	"""Application lifespan manager."""
	cfg: Config = app.state.cfg
	_log.info(
		"NginxDesk started (root=%s, certs=%s, reader=%s, pid=%d)",
		cfg.config_dir,
		cfg.ssl_subdir,
		type(app.state.scanner.reader).__name__,
		os.getpid(),
	)
	yield
	_log.info("NginxDesk shutdown complete")


async def _handle_app_error(request: Request, exc: NginxDeskError) -> JSONResponse:
	if exc.status_code >= 500:
		_log.warning("API_ERROR %s %s: %s", request.method, request.url.path, exc.message)
	else:
		_log.info("API_REJECT %s %s: %s %s", request.method, request.url.path, exc.kind, exc.message)
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
	errors = exc.errors()
	if errors:
		first = errors[0]
		where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
		message = f"{where}: {first.get('msg', 'invalid value')}" if where else first.get("msg", "Invalid request")
	else:
		message = "Invalid request"
	err = InvalidRequest(message, errors=[
		{"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg", ""), "type": e.get("type", "")}
		for e in errors
	])
	return JSONResponse(status_code=err.status_code, content=err.to_dict())


def create_app(cfg: Config | None = None) -> FastAPI:
	"""Application factory for NginxDesk.

	When no ``cfg`` is given the configuration is loaded from the
	environment and process-wide logging is set up; callers that pass
	their own ``Config`` keep whatever logging they already configured.
	"""
	if cfg is None:
		cfg = load_config()
		_setup_logging(cfg.log_level)

	app = FastAPI(
		title="NginxDesk",
		description="Web administration backend for an nginx configuration tree",
		version="0.1.0",
		lifespan=_lifespan,
		docs_url="/api/docs",
		redoc_url="/api/redoc",
	)

	# Explicit state instead of module globals
	guard = PathGuard(cfg.config_dir)
	oplog = OperationLog(cfg.cert_log_path)
	app.state.cfg = cfg
	app.state.guard = guard
	app.state.store = SandboxedFileStore(guard)
	app.state.oplog = oplog
	app.state.scanner = CertificateInventoryScanner(
		guard, make_reader(cfg.cert_reader, cfg.openssl_bin), subdir=cfg.ssl_subdir,
	)
	app.state.orchestrator = CertificateIssuanceOrchestrator(cfg, guard, oplog)
	app.state.locator = LogDirectiveLocator(cfg.config_dir, cfg.system_nginx_conf)

	# ─── MIDDLEWARE ──────────────────────────────────────────
	app.add_middleware(RequestIDMiddleware)

	# Rate limiting
	limiter.enabled = cfg.rate_limit
	app.state.limiter = limiter
	app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

	# ─── ERRORS ──────────────────────────────────────────────
	app.add_exception_handler(NginxDeskError, _handle_app_error)
	app.add_exception_handler(RequestValidationError, _handle_validation_error)

	# ─── API ROUTES ──────────────────────────────────────────
	app.include_router(files_api.router, prefix="/api")
	app.include_router(nginx_api.router, prefix="/api")
	app.include_router(logs_api.router, prefix="/api")
	app.include_router(certificates_api.router, prefix="/api")

	return app
