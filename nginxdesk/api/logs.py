#!/usr/bin/env python3
#
# nginxdesk/api/logs.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Log tail routes: nginx access/error logs and the certificate operation log."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from ..certs import OperationLog
from ..nginx import LogDirectiveLocator, read_last_lines
from ..utils.deps import get_locator, get_oplog

_log = logging.getLogger(__name__)

router = APIRouter(tags=["logs"])

DEFAULT_NGINX_LINES = 100
DEFAULT_OPLOG_LINES = 500


async def _tail_directive(locator: LogDirectiveLocator, directive_name: str, lines: int) -> PlainTextResponse:
	directive = await asyncio.to_thread(locator.locate, directive_name)
	if directive.resolved_path is None:
		return PlainTextResponse(f"No {directive_name} file configured\n")
	_log.debug("LOG_TAIL %s -> %s", directive_name, directive.resolved_path)
	text = await asyncio.to_thread(read_last_lines, directive.resolved_path, lines)
	return PlainTextResponse(text)


@router.get("/logs/access", response_class=PlainTextResponse)
async def access_log(
	lines: int = Query(default=DEFAULT_NGINX_LINES),
	locator: LogDirectiveLocator = Depends(get_locator),
) -> PlainTextResponse:
	return await _tail_directive(locator, "access_log", lines)


@router.get("/logs/error", response_class=PlainTextResponse)
async def error_log(
	lines: int = Query(default=DEFAULT_NGINX_LINES),
	locator: LogDirectiveLocator = Depends(get_locator),
) -> PlainTextResponse:
	return await _tail_directive(locator, "error_log", lines)


@router.get("/logs/cert-obtain", response_class=PlainTextResponse)
async def cert_obtain_log(
	lines: int = Query(default=DEFAULT_OPLOG_LINES),
	oplog: OperationLog = Depends(get_oplog),
) -> PlainTextResponse:
	"""Tail the certificate issuance operation log."""
	text = await asyncio.to_thread(read_last_lines, oplog.path, lines)
	return PlainTextResponse(text)
