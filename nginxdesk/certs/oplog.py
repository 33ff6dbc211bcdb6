#!/usr/bin/env python3
#
# nginxdesk/certs/oplog.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Append-only operation log for certificate issuance."""

from __future__ import annotations

import fcntl
import logging
import threading
from pathlib import Path

from ..utils.time import rfc3339, utcnow

_log = logging.getLogger(__name__)


class OperationLog:
	"""Timestamped, line-oriented log shared by every issuance request.

	The file is never truncated or rotated here. Each record is appended
	under a process-local lock and an exclusive ``flock`` so concurrent
	requests, including those served by other workers, never interleave
	partial lines.
	"""

	def __init__(self, path: Path):
		self.path = Path(path)
		self._lock = threading.Lock()

	def _write(self, text: str) -> None:
		with self._lock:
			try:
				self.path.parent.mkdir(parents=True, exist_ok=True)
				with self.path.open("a", encoding="utf-8") as f:
					fcntl.flock(f.fileno(), fcntl.LOCK_EX)
					try:
						f.write(text)
						f.flush()
					finally:
						fcntl.flock(f.fileno(), fcntl.LOCK_UN)
			except OSError as exc:
				# Issuance must not fail because its log is unwritable
				_log.warning("CERT_OPLOG cannot write %s: %s", self.path, exc.strerror or exc)

	def append(self, message: str) -> None:
		"""Append one ``<RFC3339>: message`` record."""
		message = message.rstrip("\n")
		_log.info("CERT_OPLOG %s", message)
		self._write(f"{rfc3339(utcnow())}: {message}\n")

	def append_output(self, header: str, output: str) -> None:
		"""Append a header record followed by captured process output verbatim."""
		if output and not output.endswith("\n"):
			output += "\n"
		self._write(f"{rfc3339(utcnow())}: {header}\n{output}")
