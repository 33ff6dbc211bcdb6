#!/usr/bin/env python3
#
# nginxdesk/api/certificates.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate inventory, deletion and acme.sh issuance routes."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..certs import CertificateInventoryScanner, CertificateIssuanceOrchestrator, delete_certificate
from ..models.certs import CertificateDeleteRequest, IssuanceRequest
from ..sandbox import SandboxedFileStore
from ..utils.config import Config
from ..utils.deps import get_config, get_orchestrator, get_scanner, get_store
from ..utils.rate_limit import RATE_LIMIT_API, RATE_LIMIT_HEAVY, limiter
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["certificates"])


@router.get("/certificates")
async def list_certificates(
	scanner: CertificateInventoryScanner = Depends(get_scanner),
) -> dict:
	"""List certificates under the ssl subtree; expiry is computed per call."""
	records = await scanner.scan()
	# A certificate without a sibling key has no keyFile field at all
	return ok_response(data=[r.model_dump(by_alias=True, exclude_none=True) for r in records])


@router.post("/certificates/obtain")
@limiter.limit(RATE_LIMIT_HEAVY)
async def obtain_certificate(
	request: Request,
	payload: IssuanceRequest,
	orchestrator: CertificateIssuanceOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
	"""Run acme.sh for the requested domains and place the artifacts.

	Validation errors and concurrent requests for the same domains are
	rejected before anything runs. A failed or timed-out acme.sh run still
	returns the full outcome, including its captured output, with a 502 or
	504 status.
	"""
	_log.info(
		"CERT_OBTAIN domains=%s challenge=%s staging=%s",
		",".join(payload.domains), payload.challenge, payload.staging,
	)
	outcome = await orchestrator.obtain(payload)
	body = outcome.to_dict()
	body["status"] = "ok" if outcome.succeeded else "error"
	return JSONResponse(status_code=outcome.status_code, content=body)


@router.post("/certificates/delete")
@limiter.limit(RATE_LIMIT_API)
async def remove_certificate(
	request: Request,
	payload: CertificateDeleteRequest,
	store: SandboxedFileStore = Depends(get_store),
	cfg: Config = Depends(get_config),
) -> dict:
	"""Delete a certificate and optionally its key from the ssl subtree."""
	warnings = await asyncio.to_thread(
		delete_certificate, store, cfg.ssl_subdir, payload.cert_file, payload.key_file,
	)
	return ok_response(message="Certificate deleted", warnings=warnings)
