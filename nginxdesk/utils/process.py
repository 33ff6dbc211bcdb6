#!/usr/bin/env python3
#
# nginxdesk/utils/process.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Subprocess helpers: short bounded commands and deadline-raced long runs."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

_log = logging.getLogger(__name__)

EXEC_TIMEOUT = 30.0  # seconds, default for short commands (nginx -t, openssl)
_DRAIN_TIMEOUT = 5.0  # grace period to collect trailing output after exit/kill
_READ_CHUNK = 4096

__all__ = [
	"EXEC_TIMEOUT",
	"ProcessResult",
	"run_exec",
	"run_with_deadline",
]


@dataclass(frozen=True)
class ProcessResult:
	"""Outcome of a deadline-raced subprocess."""
	returncode: int | None
	output: str
	timed_out: bool = False

	@property
	def ok(self) -> bool:
		return not self.timed_out and self.returncode == 0


async def run_exec(*cmd: str, timeout: float = EXEC_TIMEOUT, combine: bool = False) -> tuple[int, str, str]:
	"""Run a command and return (code, stdout, stderr). Uses exec, not shell.

	With ``combine=True`` stderr is folded into stdout and the third tuple
	element is empty. A timeout kills the process and returns code -1.
	"""
	proc: asyncio.subprocess.Process | None = None
	try:
		proc = await asyncio.create_subprocess_exec(
			*cmd,
			stdout=asyncio.subprocess.PIPE,
			stderr=asyncio.subprocess.STDOUT if combine else asyncio.subprocess.PIPE,
		)
		stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
		code = proc.returncode
		assert code is not None, "returncode should be set after communicate()"
		return (
			code,
			(stdout or b"").decode("utf-8", errors="replace"),
			(stderr or b"").decode("utf-8", errors="replace"),
		)
	except asyncio.TimeoutError:
		_log.warning("EXEC_TIMEOUT command timed out after %.1fs: %s", timeout, cmd[0])
		return -1, "", f"Command timed out after {timeout}s"
	except FileNotFoundError:
		_log.warning("EXEC_ERROR executable not found: %s", cmd[0])
		return -1, "", f"{cmd[0]}: executable not found"
	except OSError as exc:
		_log.warning("EXEC_ERROR command failed: %s - %s", cmd[0], exc)
		return -1, "", str(exc)
	finally:
		# Cleanup: kill leftover process regardless of exception type
		if proc is not None and proc.returncode is None:
			with contextlib.suppress(ProcessLookupError):
				proc.kill()
			await proc.wait()


def _kill_group(proc: asyncio.subprocess.Process) -> None:
	"""SIGKILL the process group started for ``proc`` (falls back to the pid)."""
	try:
		os.killpg(proc.pid, signal.SIGKILL)
	except ProcessLookupError:
		return
	except PermissionError:
		with contextlib.suppress(ProcessLookupError):
			proc.kill()


async def run_with_deadline(
	argv: Sequence[str],
	*,
	timeout: float,
	env: Mapping[str, str] | None = None,
	cwd: str | os.PathLike[str] | None = None,
) -> ProcessResult:
	"""Spawn ``argv`` and race its completion against ``timeout``.

	stdout and stderr are captured together and streamed into a buffer, so
	output produced before a timeout is preserved. On expiry the whole
	process group is killed, not merely abandoned: the child runs in its own
	session so helpers it forks (curl, dig, ...) die with it.

	Raises:
		FileNotFoundError / PermissionError: when the executable cannot be started.
	"""
	proc = await asyncio.create_subprocess_exec(
		*argv,
		stdin=asyncio.subprocess.DEVNULL,
		stdout=asyncio.subprocess.PIPE,
		stderr=asyncio.subprocess.STDOUT,
		env=dict(env) if env is not None else None,
		cwd=cwd,
		start_new_session=True,
	)
	chunks: list[bytes] = []

	async def _drain() -> None:
		assert proc.stdout is not None
		while True:
			chunk = await proc.stdout.read(_READ_CHUNK)
			if not chunk:
				return
			chunks.append(chunk)

	reader = asyncio.create_task(_drain())
	timed_out = False
	try:
		await asyncio.wait_for(proc.wait(), timeout=timeout)
	except asyncio.TimeoutError:
		timed_out = True
		_kill_group(proc)
		await proc.wait()
	except asyncio.CancelledError:
		# Caller went away: never leave the child running
		_kill_group(proc)
		await proc.wait()
		reader.cancel()
		raise

	# A grandchild may still hold the pipe open; bound the final drain.
	try:
		await asyncio.wait_for(reader, timeout=_DRAIN_TIMEOUT)
	except asyncio.TimeoutError:
		_log.debug("EXEC_DRAIN output pipe still open after exit of %s", argv[0])
	with contextlib.suppress(ProcessLookupError, PermissionError):
		# Reap stragglers of the session in either case
		os.killpg(proc.pid, signal.SIGKILL)

	output = b"".join(chunks).decode("utf-8", errors="replace")
	return ProcessResult(returncode=proc.returncode, output=output, timed_out=timed_out)
