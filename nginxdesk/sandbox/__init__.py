#!/usr/bin/env python3
#
# nginxdesk/sandbox/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Sandboxed filesystem access for the nginx configuration root."""

from .guard import PathGuard, is_within
from .store import SandboxedFileStore

__all__ = ["PathGuard", "SandboxedFileStore", "is_within"]
