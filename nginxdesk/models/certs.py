#!/usr/bin/env python3
#
# nginxdesk/models/certs.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate inventory and issuance Pydantic models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CertificateRecord(BaseModel):
	"""One certificate found under the certificate subtree."""
	model_config = ConfigDict(populate_by_name=True)

	domain: str = ""
	is_wildcard: bool = Field(default=False, alias="isWildcard")
	path: str
	cert_file: str = Field(alias="certFile")
	key_file: Optional[str] = Field(default=None, alias="keyFile")
	not_before: str = Field(default="", alias="notBefore")
	not_after: str = Field(default="", alias="notAfter")
	days_left: int = Field(default=0, alias="daysLeft")


class IssuanceRequest(BaseModel):
	"""Request to obtain a certificate through the external ACME client.

	Only the shape is checked here; semantic validation (domain syntax,
	challenge/provider combination, ...) belongs to the orchestrator so that
	every rejection is reported as ``InvalidRequest`` before anything runs.
	"""
	model_config = ConfigDict(populate_by_name=True)

	domains: list[str] = Field(default_factory=list, max_length=100)
	email: str = Field(default="", max_length=254)
	challenge: str = Field(default="http-01", max_length=32)
	provider: str = Field(default="", max_length=64)
	credentials: dict[str, str] = Field(default_factory=dict)
	staging: bool = Field(default=False, description="Use the Let's Encrypt staging server")
	force: bool = Field(default=False, description="Force re-issue even if a certificate exists")


class CertificateDeleteRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	cert_file: str = Field(default="", max_length=4096, alias="certFile")
	key_file: Optional[str] = Field(default=None, max_length=4096, alias="keyFile")
