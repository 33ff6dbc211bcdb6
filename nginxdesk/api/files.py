#!/usr/bin/env python3
#
# nginxdesk/api/files.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""File browser API routes over the sandboxed configuration root."""

import asyncio

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from ..models.files import (
	FileCreateRequest,
	FileDeleteRequest,
	FileMoveRequest,
	FileRenameRequest,
	FileWriteRequest,
	SymlinkCreateRequest,
)
from ..sandbox import SandboxedFileStore
from ..utils.deps import get_store
from ..utils.rate_limit import RATE_LIMIT_API, limiter
from .response import ok_response

router = APIRouter(tags=["files"])

_MAX_PATH = 4096


@router.get("/files")
async def list_files(
	path: str = Query(default="/", max_length=_MAX_PATH),
	store: SandboxedFileStore = Depends(get_store),
) -> dict:
	"""List one directory of the configuration root."""
	entries = await asyncio.to_thread(store.list, path)
	return ok_response(data=entries)


@router.get("/file/read")
async def read_file(
	path: str = Query(..., min_length=1, max_length=_MAX_PATH),
	store: SandboxedFileStore = Depends(get_store),
) -> Response:
	"""Return raw file content as text/plain."""
	content = await asyncio.to_thread(store.read, path)
	return Response(content=content, media_type="text/plain; charset=utf-8")


@router.post("/file/write")
@limiter.limit(RATE_LIMIT_API)
async def write_file(
	request: Request,
	payload: FileWriteRequest,
	store: SandboxedFileStore = Depends(get_store),
) -> dict:
	"""Replace a file's content (created if absent, parents are not)."""
	await asyncio.to_thread(store.write, payload.path, payload.content.encode("utf-8"))
	return ok_response(message="File saved", path=payload.path)


@router.post("/file/create")
@limiter.limit(RATE_LIMIT_API)
async def create_file(
	request: Request,
	payload: FileCreateRequest,
	store: SandboxedFileStore = Depends(get_store),
) -> dict:
	created = await asyncio.to_thread(store.create, payload.path, payload.is_dir)
	kind = "Directory" if payload.is_dir else "File"
	return ok_response(
		message=f"{kind} created" if created else f"{kind} already exists",
		created=created,
		path=payload.path,
	)


@router.post("/file/delete")
@limiter.limit(RATE_LIMIT_API)
async def delete_file(
	request: Request,
	payload: FileDeleteRequest,
	store: SandboxedFileStore = Depends(get_store),
) -> dict:
	"""Delete a file, symlink or directory tree. Missing targets succeed."""
	deleted = await asyncio.to_thread(store.delete, payload.path)
	return ok_response(message="Deleted" if deleted else "Nothing to delete", deleted=deleted)


@router.post("/file/rename")
@limiter.limit(RATE_LIMIT_API)
async def rename_file(
	request: Request,
	payload: FileRenameRequest,
	store: SandboxedFileStore = Depends(get_store),
) -> dict:
	new_path = await asyncio.to_thread(store.rename, payload.old_path, payload.new_path)
	return ok_response(message="Renamed", path=new_path)


@router.post("/file/move")
@limiter.limit(RATE_LIMIT_API)
async def move_file(
	request: Request,
	payload: FileMoveRequest,
	store: SandboxedFileStore = Depends(get_store),
) -> dict:
	"""Move into an existing directory, or to an explicit destination path."""
	final_path = await asyncio.to_thread(store.move, payload.source_path, payload.target_path)
	return ok_response(message="Moved", path=final_path)


@router.post("/file/symlink")
@limiter.limit(RATE_LIMIT_API)
async def create_symlink(
	request: Request,
	payload: SymlinkCreateRequest,
	store: SandboxedFileStore = Depends(get_store),
) -> dict:
	stored = await asyncio.to_thread(store.create_symlink, payload.link_path, payload.target_path)
	return ok_response(message="Symlink created", path=payload.link_path, target=stored)
