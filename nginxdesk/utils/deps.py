#!/usr/bin/env python3
#
# nginxdesk/utils/deps.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI dependency helpers."""

from __future__ import annotations

from fastapi import Request

from ..certs import CertificateInventoryScanner, CertificateIssuanceOrchestrator, OperationLog
from ..nginx import LogDirectiveLocator
from ..sandbox import SandboxedFileStore
from .config import Config


def get_config(request: Request) -> Config:
	"""Get the application configuration from app state."""
	return request.app.state.cfg


def get_store(request: Request) -> SandboxedFileStore:
	return request.app.state.store


def get_scanner(request: Request) -> CertificateInventoryScanner:
	return request.app.state.scanner


def get_orchestrator(request: Request) -> CertificateIssuanceOrchestrator:
	return request.app.state.orchestrator


def get_oplog(request: Request) -> OperationLog:
	return request.app.state.oplog


def get_locator(request: Request) -> LogDirectiveLocator:
	return request.app.state.locator
