#!/usr/bin/env python3
#
# main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

# NginxDesk - nginx configuration WebUI backend
# Local development entry point
#

import argparse
import os

import uvicorn
from nginxdesk.utils.config import load_config

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Uvicorn logging dict-config that reuses the same format as the app
_UVICORN_LOG_CONFIG: dict = {
	"version": 1,
	"disable_existing_loggers": False,
	"formatters": {
		"default": {
			"format": _LOG_FORMAT,
			"datefmt": _DATE_FORMAT,
		},
		"access": {
			"format": _LOG_FORMAT,
			"datefmt": _DATE_FORMAT,
		},
	},
	"handlers": {
		"default": {
			"formatter": "default",
			"class": "logging.StreamHandler",
			"stream": "ext://sys.stderr",
		},
		"access": {
			"formatter": "access",
			"class": "logging.StreamHandler",
			"stream": "ext://sys.stdout",
		},
	},
	"loggers": {
		"uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
		"uvicorn.error": {"level": "INFO"},
		"uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
	},
}


def _parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="NginxDesk server")
	parser.add_argument("--port", type=int, help="port to listen on (NGINXDESK_PORT)")
	parser.add_argument("--config", help="nginx configuration directory (NGINXDESK_CONFIG_DIR)")
	return parser.parse_args()


if __name__ == "__main__":
	args = _parse_args()

	# Flags win over the environment; the factory re-reads it in the worker
	if args.port is not None:
		os.environ["NGINXDESK_PORT"] = str(args.port)
	if args.config:
		os.environ["NGINXDESK_CONFIG_DIR"] = args.config

	cfg = load_config()

	# Set levels in the uvicorn log-config to match the app
	_level = cfg.log_level.upper()
	for _logger in _UVICORN_LOG_CONFIG["loggers"].values():
		_logger["level"] = _level

	uvicorn.run(
		"nginxdesk:create_app",
		host=cfg.host,
		port=cfg.port,
		reload=os.environ.get("NGINXDESK_DEV_RELOAD", "").lower() in ("1", "true", "yes"),
		factory=True,
		log_config=_UVICORN_LOG_CONFIG,
	)
