#!/usr/bin/env python3
#
# nginxdesk/certs/orchestrator.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate issuance through the external acme.sh client.

One request runs through ``Validating -> Preparing -> Executing ->
{Completed, TimedOut, Failed} -> ArtifactPlacement -> Done``. Every
transition is recorded in the operation log. acme.sh is spawned in its own
session and raced against a deadline; on expiry the whole process group is
killed and whatever output it produced is kept.
"""

from __future__ import annotations

import contextlib
import fcntl
import hashlib
import logging
import os
import re
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from ..errors import (
	Conflict,
	ExternalProcessFailure,
	ExternalProcessTimeout,
	InvalidRequest,
	NginxDeskError,
	PartialArtifactFailure,
)
from ..models.certs import IssuanceRequest
from ..sandbox import PathGuard
from ..utils.config import Config
from ..utils.fs import atomic_write_bytes
from ..utils.process import run_with_deadline
from .oplog import OperationLog

_log = logging.getLogger(__name__)

CHALLENGES = ("http-01", "dns-01", "tls-alpn-01")

# acme.sh DNS plugin -> environment variable holding its credential
PROVIDER_ENV: dict[str, str] = {
	"duckdns": "DuckDNS_Token",
	"cloudflare": "CF_Token",
	"digitalocean": "DO_API_KEY",
	"godaddy": "GD_Key",
	"namecheap": "NAMECHEAP_API_USER",
}

CERT_MODE = 0o644
KEY_MODE = 0o600

# RFC 1123 hostname, optionally prefixed with a single "*." label
_DOMAIN_RE = re.compile(
	r"^(\*\.)?[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?)*$"
)
_PROVIDER_RE = re.compile(r"^[A-Za-z0-9_]+$")
_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_MAX_DOMAIN_LENGTH = 253

_email_adapter = TypeAdapter(EmailStr)

__all__ = [
	"CHALLENGES",
	"PROVIDER_ENV",
	"CertificateIssuanceOrchestrator",
	"IssuanceOutcome",
	"IssuanceState",
	"validate_request",
]


class IssuanceState(str, Enum):
	VALIDATING = "validating"
	PREPARING = "preparing"
	EXECUTING = "executing"
	COMPLETED = "completed"
	TIMED_OUT = "timed_out"
	FAILED = "failed"
	ARTIFACT_PLACEMENT = "artifact_placement"
	DONE = "done"


@dataclass
class IssuanceOutcome:
	"""Result of one issuance attempt, rendered verbatim to API callers."""
	succeeded: bool
	output: str = ""
	cert_destination: Optional[str] = None
	key_destination: Optional[str] = None
	error_kind: Optional[str] = None
	error: Optional[str] = None
	warnings: list[dict[str, Any]] = field(default_factory=list)
	state: IssuanceState = IssuanceState.VALIDATING

	@property
	def status_code(self) -> int:
		if self.error_kind == ExternalProcessTimeout.kind:
			return ExternalProcessTimeout.status_code
		if not self.succeeded:
			return ExternalProcessFailure.status_code
		return 200

	def to_dict(self) -> dict[str, Any]:
		data: dict[str, Any] = {
			"success": self.succeeded,
			"output": self.output,
			"certFile": self.cert_destination,
			"keyFile": self.key_destination,
			"warnings": self.warnings,
		}
		if self.error:
			data["error"] = self.error
			data["errorKind"] = self.error_kind
		return data


def validate_request(req: IssuanceRequest) -> IssuanceRequest:
	"""Check an issuance request and return a normalized copy.

	Raises:
		InvalidRequest: on the first problem found; nothing has been created
			or spawned at that point.
	"""
	domains = [d.strip().lower() for d in req.domains if d and d.strip()]
	if not domains:
		raise InvalidRequest("At least one domain is required")
	for domain in domains:
		if len(domain) > _MAX_DOMAIN_LENGTH or not _DOMAIN_RE.match(domain):
			raise InvalidRequest(f"Invalid domain name: {domain}")

	email = req.email.strip()
	if not email:
		raise InvalidRequest("Email is required")
	try:
		email = _email_adapter.validate_python(email)
	except ValidationError:
		raise InvalidRequest(f"Invalid email address: {email}") from None

	if req.challenge not in CHALLENGES:
		raise InvalidRequest(f"Unsupported challenge type: {req.challenge}")

	provider = req.provider.strip()
	if req.challenge == "dns-01":
		if not provider:
			raise InvalidRequest("DNS provider is required for dns-01 challenge")
		if not _PROVIDER_RE.match(provider):
			raise InvalidRequest(f"Invalid DNS provider: {provider}")

	for key in req.credentials:
		if not _ENV_NAME_RE.match(key):
			raise InvalidRequest(f"Invalid credential name: {key}")

	# acme.sh plugin ids and PROVIDER_ENV keys are lower case
	return req.model_copy(update={"domains": domains, "email": email, "provider": provider.lower()})


def _domain_set_key(domains: Sequence[str]) -> str:
	return hashlib.sha256(",".join(sorted(set(domains))).encode()).hexdigest()[:32]


@contextlib.contextmanager
def _domain_set_lock(locks_dir: Path, domains: Sequence[str]) -> Iterator[None]:
	"""Hold an exclusive, non-blocking lock for one normalized domain set.

	The lock is an ``flock`` on a per-set file, so it also excludes requests
	served by other worker processes.

	Raises:
		Conflict: another issuance for the same domain set is running.
	"""
	locks_dir.mkdir(parents=True, exist_ok=True)
	lock_file = locks_dir / f"issue-{_domain_set_key(domains)}.lock"
	with open(lock_file, "w") as fd_obj:
		try:
			fcntl.flock(fd_obj.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
		except OSError:
			raise Conflict(
				f"Certificate request for {', '.join(domains)} already in progress"
			) from None
		try:
			fd_obj.write(str(time.time()))
			fd_obj.flush()
			yield
		finally:
			fcntl.flock(fd_obj.fileno(), fcntl.LOCK_UN)


class CertificateIssuanceOrchestrator:
	"""Drive acme.sh for one request at a time per domain set."""

	def __init__(self, cfg: Config, guard: PathGuard, oplog: OperationLog):
		self.cfg = cfg
		self.guard = guard
		self.oplog = oplog

	def build_argv(self, req: IssuanceRequest) -> list[str]:
		argv = [self.cfg.acme_bin, "--issue", "--email", req.email]
		if self.cfg.acme_debug:
			argv.append("--debug")
		if req.force:
			argv.append("--force")
		for domain in req.domains:
			argv.extend(["--domain", domain])
		argv.extend(["--server", "letsencrypt_test" if req.staging else "letsencrypt"])

		if req.challenge == "http-01":
			argv.extend(["--webroot", str(self.cfg.acme_webroot)])
		elif req.challenge == "dns-01":
			argv.extend(["--dns", f"dns_{req.provider}"])
		else:
			argv.append("--alpn")
		return argv

	def build_env(self, req: IssuanceRequest) -> tuple[dict[str, str], list[str]]:
		"""Return the child environment and the names of injected credentials."""
		env = dict(os.environ)
		env["LE_WORKING_DIR"] = str(self.cfg.acme_home)
		injected: list[str] = []
		# Credentials only reach the child for dns-01
		if req.challenge != "dns-01":
			return env, injected
		for key, value in req.credentials.items():
			if not value:
				continue
			name = PROVIDER_ENV.get(req.provider, key)
			env[name] = value
			injected.append(name)
		return env, injected

	def timeout_for(self, challenge: str) -> float:
		if challenge == "dns-01":
			return self.cfg.dns_challenge_timeout
		return self.cfg.http_challenge_timeout

	def _transition(self, outcome: IssuanceOutcome, state: IssuanceState, message: str) -> None:
		outcome.state = state
		self.oplog.append(f"[{state.value}] {message}")

	def _prepare(self) -> None:
		self.cfg.acme_home.mkdir(parents=True, exist_ok=True)
		self.guard.resolve_target(self.cfg.ssl_subdir).mkdir(parents=True, exist_ok=True)

	async def obtain(self, req: IssuanceRequest) -> IssuanceOutcome:
		"""Validate, run acme.sh and place the resulting artifacts.

		Raises:
			InvalidRequest: validation failed, nothing was spawned.
			Conflict: an issuance for the same domain set is already running.
		"""
		outcome = IssuanceOutcome(succeeded=False)
		# Raw request values, repr-quoted to stay on one record
		self._transition(
			outcome, IssuanceState.VALIDATING,
			f"Request for domains={req.domains!r} challenge={req.challenge!r} "
			f"provider={req.provider!r} staging={req.staging}",
		)
		try:
			req = validate_request(req)
		except InvalidRequest as exc:
			self.oplog.append(f"ERROR: {exc.message!r}")
			raise
		with _domain_set_lock(self.cfg.locks_dir, req.domains):
			return await self._run(req, outcome)

	async def _run(self, req: IssuanceRequest, outcome: IssuanceOutcome) -> IssuanceOutcome:
		try:
			self._prepare()
		except OSError as exc:
			return self._fail(outcome, ExternalProcessFailure(f"Cannot prepare directories: {exc.strerror or exc}"))

		argv = self.build_argv(req)
		env, injected = self.build_env(req)
		timeout = self.timeout_for(req.challenge)
		self._transition(outcome, IssuanceState.PREPARING, "Command: " + " ".join(argv))
		if injected:
			self.oplog.append("Credential variables: " + ", ".join(injected))

		self._transition(outcome, IssuanceState.EXECUTING, f"Running {self.cfg.acme_bin} (deadline {timeout:g}s)")
		try:
			result = await run_with_deadline(argv, timeout=timeout, env=env)
		except OSError as exc:
			return self._fail(outcome, ExternalProcessFailure(
				f"Cannot execute {self.cfg.acme_bin}: {exc.strerror or exc}"
			))

		outcome.output = result.output
		self.oplog.append_output(f"{self.cfg.acme_bin} output:", result.output)

		if result.timed_out:
			return self._fail(outcome, ExternalProcessTimeout(
				f"Certificate issuance timed out after {timeout:g}s"
			), IssuanceState.TIMED_OUT)
		if not result.ok:
			return self._fail(outcome, ExternalProcessFailure(
				f"{self.cfg.acme_bin} exited with code {result.returncode}"
			))

		self._transition(outcome, IssuanceState.COMPLETED, f"{self.cfg.acme_bin} finished successfully")
		outcome.succeeded = True
		self._place_artifacts(req.domains[0], outcome)
		self._transition(
			outcome, IssuanceState.DONE,
			f"Done: cert={outcome.cert_destination} key={outcome.key_destination} warnings={len(outcome.warnings)}",
		)
		return outcome

	def _fail(
		self,
		outcome: IssuanceOutcome,
		exc: NginxDeskError,
		state: IssuanceState = IssuanceState.FAILED,
	) -> IssuanceOutcome:
		outcome.succeeded = False
		outcome.error_kind = exc.kind
		outcome.error = exc.message
		_log.warning("CERT_ISSUE_FAILED %s: %s", exc.kind, exc.message)
		self._transition(outcome, state, exc.message)
		return outcome

	def _copy_artifact(self, source: Path, user_dest: str, mode: int) -> str:
		dest = self.guard.resolve_target(user_dest)
		data = source.read_bytes()
		atomic_write_bytes(dest, data, mode=mode)
		return self.guard.relative(dest)

	def _place_artifacts(self, primary: str, outcome: IssuanceOutcome) -> None:
		"""Copy certificate and key out of acme.sh's store into the ssl subtree.

		Each copy is independent; a failure only clears that destination and
		adds a warning.
		"""
		self._transition(outcome, IssuanceState.ARTIFACT_PLACEMENT, f"Placing artifacts for {primary}")
		source_dir = self.cfg.acme_home / f"{primary}_ecc"
		base = primary[2:] if primary.startswith("*.") else primary
		copies = (
			("certificate", source_dir / "fullchain.cer", f"/{self.cfg.ssl_subdir}/{base}.crt", CERT_MODE),
			("key", source_dir / f"{primary}.key", f"/{self.cfg.ssl_subdir}/{base}.key", KEY_MODE),
		)
		for label, source, user_dest, mode in copies:
			try:
				placed: Optional[str] = self._copy_artifact(source, user_dest, mode)
			except OSError as exc:
				placed = None
				reason = exc.strerror or str(exc)
			except NginxDeskError as exc:
				placed = None
				reason = exc.message
			if placed is None:
				message = f"Failed to copy {label} to {user_dest}: {reason}"
				_log.warning("CERT_ARTIFACT %s", message)
				outcome.warnings.append(PartialArtifactFailure(message).to_dict())
				self.oplog.append(message)
			else:
				self.oplog.append(f"Copied {label} to {placed}")
			if label == "certificate":
				outcome.cert_destination = placed
			else:
				outcome.key_destination = placed
