#!/usr/bin/env python3
#
# nginxdesk/nginx/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""nginx process control and log discovery."""

from . import control
from .logs import LogDirective, LogDirectiveLocator, read_last_lines

__all__ = ["LogDirective", "LogDirectiveLocator", "control", "read_last_lines"]
