#!/usr/bin/env python3
#
# nginxdesk/models/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Pydantic models for NginxDesk."""

from .certs import (
	CertificateDeleteRequest,
	CertificateRecord,
	IssuanceRequest,
)
from .files import (
	Entry,
	FileCreateRequest,
	FileDeleteRequest,
	FileMoveRequest,
	FileRenameRequest,
	FileWriteRequest,
	SymlinkCreateRequest,
)

__all__ = [
	# Certificates
	"CertificateDeleteRequest",
	"CertificateRecord",
	"IssuanceRequest",
	# Files
	"Entry",
	"FileCreateRequest",
	"FileDeleteRequest",
	"FileMoveRequest",
	"FileRenameRequest",
	"FileWriteRequest",
	"SymlinkCreateRequest",
]
