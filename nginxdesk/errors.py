#!/usr/bin/env python3
#
# nginxdesk/errors.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Error taxonomy shared by the file, log and certificate layers."""

from __future__ import annotations

import errno
from typing import Any

__all__ = [
	"NginxDeskError",
	"SandboxViolation",
	"NotFound",
	"PermissionDenied",
	"InvalidRequest",
	"Conflict",
	"ExternalProcessFailure",
	"ExternalProcessTimeout",
	"PartialArtifactFailure",
	"translate_os_error",
]


class NginxDeskError(Exception):
	"""Base class for every error surfaced to API callers.

	``kind`` is the machine-readable identifier rendered in error responses,
	``message`` the human-readable text. Messages must only ever mention
	root-relative paths.
	"""

	kind = "Error"
	status_code = 500

	def __init__(self, message: str, **details: Any):
		super().__init__(message)
		self.message = message
		self.details = details

	def to_dict(self) -> dict[str, Any]:
		payload: dict[str, Any] = {
			"status": "error",
			"error": self.kind,
			"message": self.message,
		}
		if self.details:
			payload.update(self.details)
		return payload


class SandboxViolation(NginxDeskError):
	"""Path escapes the sandboxed root."""
	kind = "SandboxViolation"
	status_code = 403


class NotFound(NginxDeskError):
	kind = "NotFound"
	status_code = 404


class PermissionDenied(NginxDeskError):
	kind = "PermissionDenied"
	status_code = 403


class InvalidRequest(NginxDeskError):
	"""Malformed or semantically invalid input, detected before side effects."""
	kind = "InvalidRequest"
	status_code = 400


class Conflict(NginxDeskError):
	kind = "Conflict"
	status_code = 409


class ExternalProcessFailure(NginxDeskError):
	"""External tool exited non-zero, could not be started, or produced garbage."""
	kind = "ExternalProcessFailure"
	status_code = 502


class ExternalProcessTimeout(NginxDeskError):
	"""External tool exceeded its deadline and was killed."""
	kind = "ExternalProcessTimeout"
	status_code = 504


class PartialArtifactFailure(NginxDeskError):
	"""One of two related files could not be copied or deleted.

	Never escalated to an HTTP failure; attached to responses as a warning.
	"""
	kind = "PartialArtifactFailure"
	status_code = 200


def translate_os_error(exc: OSError, rel_path: str) -> NginxDeskError:
	"""Map an ``OSError`` to the taxonomy without leaking absolute paths.

	Only ``strerror`` is used; ``str(exc)`` would include the full filename.
	"""
	reason = exc.strerror or exc.__class__.__name__
	if isinstance(exc, FileNotFoundError):
		return NotFound(f"{rel_path}: no such file or directory")
	if isinstance(exc, PermissionError):
		return PermissionDenied(f"{rel_path}: permission denied")
	if isinstance(exc, FileExistsError):
		return Conflict(f"{rel_path}: already exists")
	if isinstance(exc, (IsADirectoryError, NotADirectoryError)):
		return InvalidRequest(f"{rel_path}: {reason.lower()}")
	if exc.errno in (errno.EINVAL, errno.ENOTEMPTY, errno.EXDEV, errno.ELOOP, errno.ENAMETOOLONG):
		return InvalidRequest(f"{rel_path}: {reason.lower()}")
	return NginxDeskError(f"{rel_path}: {reason.lower()}")
