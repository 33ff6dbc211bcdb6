#!/usr/bin/env python3
#
# nginxdesk/sandbox/guard.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Root confinement for every user-supplied path."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..errors import InvalidRequest, SandboxViolation

_log = logging.getLogger(__name__)

__all__ = ["PathGuard", "is_within"]


def is_within(path: Path | str, base: Path | str) -> bool:
	"""Return True if ``path`` is ``base`` or a descendant of it.

	Compares path components, never raw strings: ``/etc/nginx-evil`` is not
	inside ``/etc/nginx``. Both arguments must already be canonical.
	"""
	path_parts = Path(path).parts
	base_parts = Path(base).parts
	return path_parts[:len(base_parts)] == base_parts


class PathGuard:
	"""Canonicalize root-relative paths and reject anything escaping the root.

	The root is fixed at construction and never changes. A leading ``/`` in
	a user path means "relative to the root", matching how the UI addresses
	files.
	"""

	def __init__(self, root: Path | str):
		self.root = Path(os.path.realpath(root))

	def __repr__(self) -> str:
		return f"PathGuard(root={str(self.root)!r})"

	def resolve(self, user_path: str) -> Path:
		"""Join ``user_path`` onto the root and normalize it lexically.

		The target does not need to exist and symlinks are not followed.

		Raises:
			InvalidRequest: path contains a NUL byte.
			SandboxViolation: normalized path is outside the root.
		"""
		if "\x00" in user_path:
			raise InvalidRequest("Path contains a NUL byte")
		joined = os.path.join(str(self.root), user_path.lstrip("/"))
		candidate = Path(os.path.normpath(joined))
		if not is_within(candidate, self.root):
			_log.warning("SANDBOX_VIOLATION path=%r", user_path)
			raise SandboxViolation(f"{user_path}: path escapes sandbox")
		return candidate

	def ensure_real_inside(self, path: Path, user_path: str) -> Path:
		"""Follow symlinks in ``path`` and require the result to stay inside the root."""
		real = Path(os.path.realpath(path))
		if not is_within(real, self.root):
			_log.warning("SANDBOX_VIOLATION path=%r resolves outside root", user_path)
			raise SandboxViolation(f"{user_path}: path escapes sandbox")
		return real

	def resolve_existing(self, user_path: str) -> Path:
		"""Resolve for reading: the symlink-free real path is checked as well.

		Returns the real path. Used by list/read so a symlink is
		confinement-checked whenever it is accessed.
		"""
		return self.ensure_real_inside(self.resolve(user_path), user_path)

	def resolve_target(self, user_path: str) -> Path:
		"""Resolve a mutation target without following its last component.

		The parent directory's real path must stay inside the root so a
		symlinked directory planted in the tree cannot redirect a write,
		delete or rename elsewhere.
		"""
		candidate = self.resolve(user_path)
		if candidate != self.root:
			self.ensure_real_inside(candidate.parent, user_path)
		return candidate

	def relative(self, path: Path) -> str:
		"""Return the ``/``-prefixed root-relative form of a confined path."""
		rel = os.path.relpath(path, self.root)
		if rel == ".":
			return "/"
		return "/" + Path(rel).as_posix()
