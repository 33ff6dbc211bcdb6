#!/usr/bin/env python3
#
# nginxdesk/nginx/logs.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Locate nginx log files from the active configuration and tail them."""

from __future__ import annotations

import logging
import os
import re
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import InvalidRequest

_log = logging.getLogger(__name__)

# Fallback locations when no configuration names the log
DEFAULT_LOG_PATHS: dict[str, str] = {
	"access_log": "/var/log/nginx/access.log",
	"error_log": "/var/log/nginx/error.log",
}

# Directive values that do not name a file
_DISABLED_VALUES = frozenset({"off", "stderr"})
_NON_FILE_PREFIXES = ("syslog:", "memory:")

MIN_TAIL_LINES = 1
MAX_TAIL_LINES = 10_000

__all__ = [
	"DEFAULT_LOG_PATHS",
	"LogDirective",
	"LogDirectiveLocator",
	"MAX_TAIL_LINES",
	"MIN_TAIL_LINES",
	"parse_log_directive",
	"read_last_lines",
]


@dataclass(frozen=True)
class LogDirective:
	"""Where a named log stream currently goes."""
	directive_name: str
	resolved_path: Optional[Path]
	source: Optional[Path] = None  # config file it came from; None = built-in default


def _is_file_sink(value: str) -> bool:
	if value in _DISABLED_VALUES:
		return False
	return not value.startswith(_NON_FILE_PREFIXES)


def parse_log_directive(config_path: Path, directive_name: str) -> Optional[Path]:
	"""Return the first file path the directive points at, or None.

	Comment lines are skipped, a trailing ``;`` is ignored, and values that
	disable logging or route it to a non-file sink are passed over. Relative
	paths resolve against the directory of ``config_path``.
	"""
	pattern = re.compile(r"^\s*" + re.escape(directive_name) + r"\s+([^\s;]+)")
	try:
		with config_path.open("r", encoding="utf-8", errors="replace") as f:
			for line in f:
				if line.strip().startswith("#"):
					continue
				match = pattern.match(line)
				if not match:
					continue
				value = match.group(1)
				if not _is_file_sink(value):
					_log.debug("LOG_LOCATE %s in %s is not a file sink (%s)", directive_name, config_path, value)
					continue
				path = Path(value)
				if not path.is_absolute():
					path = config_path.parent / path
				return Path(os.path.normpath(path))
	except OSError as exc:
		_log.debug("LOG_LOCATE cannot read %s: %s", config_path, exc)
	return None


class LogDirectiveLocator:
	"""Resolve ``access_log`` / ``error_log`` to concrete files.

	Candidates are ``<root>/nginx.conf`` followed by the system-wide config;
	the built-in default is used when neither yields a file. Recomputed on
	every call because the configuration may have been edited meanwhile.
	"""

	def __init__(self, root: Path, system_conf: Path | None = None):
		self.root = Path(root)
		self.system_conf = Path(system_conf) if system_conf is not None else None

	def candidates(self) -> list[Path]:
		paths = [self.root / "nginx.conf"]
		if self.system_conf is not None and self.system_conf not in paths:
			paths.append(self.system_conf)
		return paths

	def locate(self, directive_name: str) -> LogDirective:
		if directive_name not in DEFAULT_LOG_PATHS:
			raise InvalidRequest(f"Unknown log directive: {directive_name}")
		for conf in self.candidates():
			if not conf.is_file():
				continue
			found = parse_log_directive(conf, directive_name)
			if found is not None:
				return LogDirective(directive_name, found, conf)
		return LogDirective(directive_name, Path(DEFAULT_LOG_PATHS[directive_name]))


def clamp_lines(lines: int) -> int:
	return max(MIN_TAIL_LINES, min(MAX_TAIL_LINES, lines))


def read_last_lines(path: Path, lines: int) -> str:
	"""Return the last ``lines`` lines of ``path``.

	Unreadable files are reported inside the returned text rather than
	raised, so the log viewer always has something to display.
	"""
	count = clamp_lines(lines)
	try:
		with Path(path).open("r", encoding="utf-8", errors="replace") as f:
			return "".join(deque(f, maxlen=count))
	except OSError as exc:
		return f"Error reading log: {path}: {exc.strerror or exc}\n"
