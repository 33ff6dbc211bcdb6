#!/usr/bin/env python3
#
# nginxdesk/certs/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate inventory and acme.sh driven issuance."""

from .inventory import CertificateInventoryScanner, delete_certificate, make_reader
from .oplog import OperationLog
from .orchestrator import CertificateIssuanceOrchestrator, IssuanceOutcome, IssuanceState

__all__ = [
	"CertificateInventoryScanner",
	"CertificateIssuanceOrchestrator",
	"IssuanceOutcome",
	"IssuanceState",
	"OperationLog",
	"delete_certificate",
	"make_reader",
]
