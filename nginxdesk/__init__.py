#!/usr/bin/env python3
#
# nginxdesk/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""NginxDesk – web administration backend for an nginx configuration tree."""

from .main import create_app

__all__ = ["create_app"]
