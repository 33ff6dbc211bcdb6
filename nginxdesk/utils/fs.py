#!/usr/bin/env python3
#
# nginxdesk/utils/fs.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Filesystem write helpers."""

from __future__ import annotations

import contextlib
import os
import stat
import tempfile
from pathlib import Path

DEFAULT_FILE_MODE = 0o644

__all__ = ["DEFAULT_FILE_MODE", "atomic_write_bytes"]


def atomic_write_bytes(path: Path, data: bytes, mode: int | None = None) -> None:
	"""Replace ``path`` with ``data`` via temp file + fsync + rename.

	The parent directory must already exist. When ``mode`` is None the
	permission bits of an existing file are preserved (new files get 0644).
	``path`` must be the real target: a symlink at ``path`` would be replaced
	by a regular file.
	"""
	if mode is None:
		try:
			mode = stat.S_IMODE(os.stat(path).st_mode)
		except FileNotFoundError:
			mode = DEFAULT_FILE_MODE

	fd, tmp_path = tempfile.mkstemp(
		dir=str(path.parent),
		prefix=f".{path.name}.",
		suffix=".tmp",
	)
	try:
		os.fchmod(fd, mode)
		with os.fdopen(fd, "wb") as f:
			f.write(data)
			f.flush()
			os.fsync(f.fileno())
		os.replace(tmp_path, path)
		# Sync parent directory to ensure the rename is durable
		dir_fd = os.open(str(path.parent), os.O_RDONLY)
		try:
			os.fsync(dir_fd)
		finally:
			os.close(dir_fd)
	finally:
		with contextlib.suppress(OSError):
			if os.path.exists(tmp_path):
				os.unlink(tmp_path)
