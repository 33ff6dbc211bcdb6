#!/usr/bin/env python3
#
# nginxdesk/utils/request_id.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Request ID middleware for tracing."""

from __future__ import annotations

import contextvars
import logging
import re
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Current request id, "-" outside of a request
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

# Client supplied ids end up in log lines; keep them short and printable
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
	"""Add a unique request ID to each request for tracing/debugging."""

	async def dispatch(self, request: Request, call_next: Callable) -> Response:
		request_id = request.headers.get("X-Request-ID", "")
		if not _REQUEST_ID_RE.match(request_id):
			request_id = str(uuid.uuid4())

		request.state.request_id = request_id
		token = request_id_var.set(request_id)
		try:
			response = await call_next(request)
		finally:
			request_id_var.reset(token)

		response.headers["X-Request-ID"] = request_id

		return response


class RequestIDLogFilter(logging.Filter):
	"""Expose the current request id to log records as ``request_id``."""

	def filter(self, record: logging.LogRecord) -> bool:
		record.request_id = request_id_var.get()
		return True
