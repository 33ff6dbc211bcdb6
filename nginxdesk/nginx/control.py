#!/usr/bin/env python3
#
# nginxdesk/nginx/control.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""nginx syntax check and reload."""

from __future__ import annotations

import logging

from ..utils.process import EXEC_TIMEOUT, run_exec

_log = logging.getLogger(__name__)


async def _run_nginx(nginx_bin: str, *args: str, timeout: float) -> tuple[bool, str]:
	"""Run nginx with combined output; spawn failures and timeouts count as failure."""
	code, output, err = await run_exec(nginx_bin, *args, timeout=timeout, combine=True)
	return code == 0, output or err


async def test_config(nginx_bin: str = "nginx", *, timeout: float = EXEC_TIMEOUT) -> tuple[bool, str]:
	"""Run ``nginx -t``; returns (success, combined output)."""
	ok, output = await _run_nginx(nginx_bin, "-t", timeout=timeout)
	_log.info("NGINX_TEST success=%s", ok)
	return ok, output


async def reload(nginx_bin: str = "nginx", *, timeout: float = EXEC_TIMEOUT) -> tuple[bool, str]:
	"""Run ``nginx -s reload``; returns (success, combined output)."""
	ok, output = await _run_nginx(nginx_bin, "-s", "reload", timeout=timeout)
	if ok:
		_log.info("NGINX_RELOAD success")
	else:
		_log.warning("NGINX_RELOAD failed: %s", output.strip()[:500])
	return ok, output
