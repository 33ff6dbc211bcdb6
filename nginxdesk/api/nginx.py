#!/usr/bin/env python3
#
# nginxdesk/api/nginx.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""nginx control routes."""

from fastapi import APIRouter, Depends, Request

from ..nginx import control
from ..utils.config import Config
from ..utils.deps import get_config
from ..utils.rate_limit import RATE_LIMIT_API, limiter

router = APIRouter(tags=["nginx"])


@router.post("/nginx/test")
@limiter.limit(RATE_LIMIT_API)
async def nginx_test(request: Request, cfg: Config = Depends(get_config)) -> dict:
	"""Run ``nginx -t`` and return its verdict with the combined output."""
	ok, output = await control.test_config(cfg.nginx_bin)
	return {"success": ok, "output": output}


@router.post("/nginx/reload")
@limiter.limit(RATE_LIMIT_API)
async def nginx_reload(request: Request, cfg: Config = Depends(get_config)) -> dict:
	ok, output = await control.reload(cfg.nginx_bin)
	return {"success": ok, "output": output}
