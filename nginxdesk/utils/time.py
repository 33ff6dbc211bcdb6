#!/usr/bin/env python3
#
# nginxdesk/utils/time.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Timezone-aware time utilities."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
	"""Return the current UTC time as a timezone-aware datetime."""
	return datetime.now(timezone.utc)


def rfc3339(dt: datetime) -> str:
	"""Format an aware datetime as RFC 3339 with second precision."""
	if dt.tzinfo is None:
		raise ValueError("Naive datetime not allowed - must be timezone-aware")
	return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def from_timestamp(ts: float) -> str:
	"""RFC 3339 rendering of a POSIX timestamp (file modification times)."""
	return rfc3339(datetime.fromtimestamp(ts, tz=timezone.utc))
