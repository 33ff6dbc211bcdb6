#!/usr/bin/env python3
#
# nginxdesk/models/files.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Sandboxed file operation Pydantic models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Upper bound for a single config file written through the API (8 MiB)
MAX_FILE_CONTENT = 8 * 1024 * 1024
_MAX_PATH = 4096


class Entry(BaseModel):
	"""A single filesystem object inside the sandboxed root."""
	model_config = ConfigDict(populate_by_name=True)

	name: str
	path: str
	is_dir: bool = Field(alias="isDir")
	is_symlink: bool = Field(default=False, alias="isSymlink")
	link_target: Optional[str] = Field(default=None, alias="linkTarget")
	size: int = Field(default=0, ge=0)
	mod_time: str = Field(alias="modTime")  # RFC 3339


class _PathBody(BaseModel):
	model_config = ConfigDict(populate_by_name=True)


class FileWriteRequest(_PathBody):
	"""Replace a file's content in full."""
	path: str = Field(..., min_length=1, max_length=_MAX_PATH)
	content: str = Field(default="", max_length=MAX_FILE_CONTENT)


class FileCreateRequest(_PathBody):
	path: str = Field(..., min_length=1, max_length=_MAX_PATH)
	is_dir: bool = Field(default=False, alias="isDir")


class FileDeleteRequest(_PathBody):
	path: str = Field(..., min_length=1, max_length=_MAX_PATH)


class FileRenameRequest(_PathBody):
	old_path: str = Field(..., min_length=1, max_length=_MAX_PATH, alias="oldPath")
	new_path: str = Field(..., min_length=1, max_length=_MAX_PATH, alias="newPath")


class FileMoveRequest(_PathBody):
	source_path: str = Field(..., min_length=1, max_length=_MAX_PATH, alias="sourcePath")
	target_path: str = Field(..., min_length=1, max_length=_MAX_PATH, alias="targetPath")


class SymlinkCreateRequest(_PathBody):
	"""Create ``link_path`` pointing at ``target_path``.

	An absolute-looking target is interpreted relative to the sandbox root
	and rewritten into a relative link; anything else is stored verbatim.
	"""
	link_path: str = Field(..., min_length=1, max_length=_MAX_PATH, alias="linkPath")
	target_path: str = Field(..., min_length=1, max_length=_MAX_PATH, alias="targetPath")
