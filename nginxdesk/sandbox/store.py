#!/usr/bin/env python3
#
# nginxdesk/sandbox/store.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""File operations confined to the sandboxed nginx configuration root."""

from __future__ import annotations

import contextlib
import logging
import os
import posixpath
import shutil
import stat
from collections.abc import Iterator
from pathlib import Path

from ..errors import Conflict, InvalidRequest, NotFound, translate_os_error
from ..models.files import Entry
from ..utils.fs import atomic_write_bytes
from ..utils.time import from_timestamp
from .guard import PathGuard, is_within

_log = logging.getLogger(__name__)

__all__ = ["SandboxedFileStore"]


@contextlib.contextmanager
def _translate(rel_path: str) -> Iterator[None]:
	"""Re-raise OSErrors as taxonomy errors naming only ``rel_path``."""
	try:
		yield
	except OSError as exc:
		raise translate_os_error(exc, rel_path) from exc


class SandboxedFileStore:
	"""List/read/write/create/delete/rename/move/symlink under one root.

	Every operation passes its user-supplied path(s) through the
	``PathGuard`` before touching the filesystem; a rejected path never
	reaches an I/O primitive.
	"""

	def __init__(self, guard: PathGuard):
		self.guard = guard

	@property
	def root(self) -> Path:
		return self.guard.root

	def _refuse_root(self, target: Path, action: str) -> None:
		if target == self.root:
			raise InvalidRequest(f"Refusing to {action} the sandbox root")

	# ------------------------------------------------------------------
	# Read side
	# ------------------------------------------------------------------

	def list(self, path: str = "/") -> list[Entry]:
		"""List a directory in iteration order."""
		rel = self.guard.relative(self.guard.resolve(path))
		real = self.guard.resolve_existing(path)
		entries: list[Entry] = []
		with _translate(rel):
			if not real.exists():
				raise NotFound(f"{rel}: no such file or directory")
			if not real.is_dir():
				raise InvalidRequest(f"{rel}: not a directory")
			with os.scandir(real) as it:
				for dirent in it:
					try:
						st = dirent.stat(follow_symlinks=False)
					except OSError:
						continue
					is_symlink = stat.S_ISLNK(st.st_mode)
					link_target = None
					if is_symlink:
						with contextlib.suppress(OSError):
							link_target = os.readlink(dirent.path)
					entries.append(Entry(
						name=dirent.name,
						path=posixpath.join(rel, dirent.name),
						is_dir=stat.S_ISDIR(st.st_mode),
						is_symlink=is_symlink,
						link_target=link_target,
						size=st.st_size,
						mod_time=from_timestamp(st.st_mtime),
					))
		return entries

	def read(self, path: str) -> bytes:
		rel = self.guard.relative(self.guard.resolve(path))
		real = self.guard.resolve_existing(path)
		with _translate(rel):
			if real.is_dir():
				raise InvalidRequest(f"{rel}: is a directory")
			return real.read_bytes()

	# ------------------------------------------------------------------
	# Write side
	# ------------------------------------------------------------------

	def write(self, path: str, content: bytes) -> None:
		"""Replace a file's content in full; parents are never created."""
		target = self.guard.resolve_target(path)
		self._refuse_root(target, "overwrite")
		rel = self.guard.relative(target)
		# Writes follow an existing symlink, so its destination must be confined too
		real = self.guard.ensure_real_inside(target, path)
		with _translate(rel):
			if real.is_dir():
				raise InvalidRequest(f"{rel}: is a directory")
			if not real.parent.is_dir():
				raise NotFound(f"{rel}: parent directory does not exist")
			atomic_write_bytes(real, content)
		_log.info("FILE_WRITE path=%s bytes=%d", rel, len(content))

	def create(self, path: str, is_dir: bool = False) -> bool:
		"""Create a directory (with parents) or an empty file.

		Returns False when an object of the requested type already exists;
		an existing file is never truncated.
		"""
		target = self.guard.resolve_target(path)
		rel = self.guard.relative(target)
		with _translate(rel):
			if os.path.lexists(target):
				if target.is_symlink():
					self.guard.ensure_real_inside(target, path)
				existing_dir = target.is_dir()
				if existing_dir == is_dir:
					return False
				kind = "directory" if existing_dir else "file"
				raise Conflict(f"{rel}: already exists as a {kind}")
			if is_dir:
				target.mkdir(parents=True, exist_ok=True)
			else:
				target.parent.mkdir(parents=True, exist_ok=True)
				with open(target, "xb"):
					pass
		_log.info("FILE_CREATE path=%s dir=%s", rel, is_dir)
		return True

	def delete(self, path: str) -> bool:
		"""Remove a file, symlink or directory tree.

		A missing target counts as success and returns False. Symlinks are
		removed themselves, never their targets.
		"""
		target = self.guard.resolve_target(path)
		self._refuse_root(target, "delete")
		rel = self.guard.relative(target)
		try:
			with _translate(rel):
				if target.is_symlink() or not target.is_dir():
					target.unlink()
				else:
					shutil.rmtree(target)
		except NotFound:
			_log.debug("FILE_DELETE path=%s already absent", rel)
			return False
		_log.info("FILE_DELETE path=%s", rel)
		return True

	def rename(self, old_path: str, new_path: str) -> str:
		"""Rename ``old_path`` to ``new_path``; returns the new relative path."""
		src = self.guard.resolve_target(old_path)
		dst = self.guard.resolve_target(new_path)
		self._refuse_root(src, "rename")
		self._refuse_root(dst, "replace")
		rel_src = self.guard.relative(src)
		rel_dst = self.guard.relative(dst)
		if not os.path.lexists(src):
			raise NotFound(f"{rel_src}: no such file or directory")
		with _translate(f"{rel_src} -> {rel_dst}"):
			os.rename(src, dst)
		_log.info("FILE_RENAME from=%s to=%s", rel_src, rel_dst)
		return rel_dst

	def move(self, source_path: str, target_path: str) -> str:
		"""Move ``source_path``; an existing directory target receives it by base name.

		Returns the final relative path of the moved object.
		"""
		src = self.guard.resolve_target(source_path)
		dst = self.guard.resolve_target(target_path)
		self._refuse_root(src, "move")
		rel_src = self.guard.relative(src)
		if not os.path.lexists(src):
			raise NotFound(f"{rel_src}: no such file or directory")

		if dst.is_dir():
			real_dst = self.guard.ensure_real_inside(dst, target_path)
			if src.is_dir() and not src.is_symlink() and is_within(real_dst, os.path.realpath(src)):
				raise InvalidRequest(f"{rel_src}: cannot move a directory into itself")
			dst = self.guard.resolve_target(self.guard.relative(dst / src.name))
		self._refuse_root(dst, "replace")
		rel_dst = self.guard.relative(dst)

		with _translate(f"{rel_src} -> {rel_dst}"):
			os.rename(src, dst)
		_log.info("FILE_MOVE from=%s to=%s", rel_src, rel_dst)
		return rel_dst

	def create_symlink(self, link_path: str, link_target: str) -> str:
		"""Create a symlink and return the target string actually stored.

		``/``-prefixed targets are root-relative: they must be confined and
		are rewritten relative to the link's directory. Other targets are
		stored verbatim; they are confinement-checked whenever the link is
		read through this store.
		"""
		link = self.guard.resolve_target(link_path)
		self._refuse_root(link, "replace")
		rel = self.guard.relative(link)
		if "\x00" in link_target:
			raise InvalidRequest("Symlink target contains a NUL byte")

		if link_target.startswith("/"):
			target_abs = self.guard.resolve(link_target)
			stored = os.path.relpath(target_abs, link.parent)
		else:
			stored = link_target

		with _translate(rel):
			if os.path.lexists(link):
				raise Conflict(f"{rel}: already exists")
			os.symlink(stored, link)
		_log.info("FILE_SYMLINK path=%s target=%s", rel, stored)
		return stored
