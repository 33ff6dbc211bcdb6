#!/usr/bin/env python3
#
# nginxdesk/certs/inventory.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate inventory: scan the certificate subtree and delete entries."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from cryptography import x509
from cryptography.x509.oid import NameOID

from ..errors import InvalidRequest, NginxDeskError, PartialArtifactFailure, SandboxViolation
from ..models.certs import CertificateRecord
from ..sandbox import PathGuard, SandboxedFileStore, is_within
from ..utils.process import run_exec
from ..utils.time import utcnow

_log = logging.getLogger(__name__)

CERT_SUFFIXES = (".crt", ".pem")
KEY_SUFFIX = ".key"
_SECONDS_PER_DAY = 86400

_OPENSSL_DATE_FORMAT = "%b %d %H:%M:%S %Y %Z"
# Matches "CN = x" (OpenSSL 1.1/3.0), "CN=x" (3.2+) and "/CN=x" (1.0)
_CN_RE = re.compile(r"(?:^|[,/])\s*CN\s*=\s*([^,/]+)")

__all__ = [
	"CERT_SUFFIXES",
	"CertificateFields",
	"CertificateInventoryScanner",
	"CertificateReader",
	"CryptographyReader",
	"OpenSSLReader",
	"days_remaining",
	"delete_certificate",
	"make_reader",
	"parse_openssl_output",
]


@dataclass(frozen=True)
class CertificateFields:
	"""Subject and validity window extracted from one certificate."""
	common_name: str
	not_before: datetime
	not_after: datetime


class CertificateReader(Protocol):
	async def read(self, path: Path) -> Optional[CertificateFields]:
		"""Return parsed fields, or None when the file is not a readable certificate."""
		...


def _parse_openssl_date(value: str) -> Optional[datetime]:
	normalized = " ".join(value.split())
	try:
		return datetime.strptime(normalized, _OPENSSL_DATE_FORMAT).replace(tzinfo=timezone.utc)
	except ValueError:
		return None


def parse_openssl_output(text: str) -> Optional[CertificateFields]:
	"""Pattern-match ``openssl x509 -noout -subject -dates`` output."""
	common_name = ""
	not_before: Optional[datetime] = None
	not_after: Optional[datetime] = None
	for line in text.splitlines():
		line = line.strip()
		if line.startswith("subject="):
			match = _CN_RE.search(line[len("subject="):])
			if match:
				common_name = match.group(1).strip()
		elif line.startswith("notBefore="):
			not_before = _parse_openssl_date(line[len("notBefore="):])
		elif line.startswith("notAfter="):
			not_after = _parse_openssl_date(line[len("notAfter="):])
	if not_before is None or not_after is None:
		return None
	return CertificateFields(common_name, not_before, not_after)


class OpenSSLReader:
	"""Delegate parsing to the external ``openssl x509`` tool."""

	def __init__(self, openssl_bin: str = "openssl", timeout: float = 10.0):
		self.openssl_bin = openssl_bin
		self.timeout = timeout

	async def read(self, path: Path) -> Optional[CertificateFields]:
		code, stdout, _ = await run_exec(
			self.openssl_bin, "x509", "-in", str(path), "-noout", "-subject", "-dates",
			timeout=self.timeout,
		)
		if code != 0:
			return None
		return parse_openssl_output(stdout)


class CryptographyReader:
	"""Parse PEM certificates in-process with ``cryptography``."""

	@staticmethod
	def _read_sync(path: Path) -> Optional[CertificateFields]:
		try:
			cert = x509.load_pem_x509_certificate(path.read_bytes())
		except (OSError, ValueError):
			return None
		cn_attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
		common_name = str(cn_attrs[0].value) if cn_attrs else ""
		return CertificateFields(common_name, cert.not_valid_before_utc, cert.not_valid_after_utc)

	async def read(self, path: Path) -> Optional[CertificateFields]:
		return await asyncio.to_thread(self._read_sync, path)


def make_reader(kind: str, openssl_bin: str = "openssl") -> CertificateReader:
	"""Pick the certificate reader; ``auto`` prefers openssl when installed."""
	if kind == "openssl":
		return OpenSSLReader(openssl_bin)
	if kind == "cryptography":
		return CryptographyReader()
	if shutil.which(openssl_bin):
		return OpenSSLReader(openssl_bin)
	_log.info("CERT_READER %s not found, parsing certificates in-process", openssl_bin)
	return CryptographyReader()


def days_remaining(not_after: datetime, now: datetime) -> int:
	"""Whole days until expiry, truncated toward zero."""
	return int((not_after - now).total_seconds() / _SECONDS_PER_DAY)


class CertificateInventoryScanner:
	"""Build ``CertificateRecord``s from the certificate subtree on every call.

	Nothing is cached: records must reflect files the orchestrator placed a
	moment ago, and ``daysLeft`` drifts with the wall clock.
	"""

	def __init__(
		self,
		guard: PathGuard,
		reader: CertificateReader,
		subdir: str = "ssl",
		clock: Callable[[], datetime] = utcnow,
	):
		self.guard = guard
		self.reader = reader
		self.subdir = subdir
		self._clock = clock

	@property
	def cert_root(self) -> Path:
		return self.guard.resolve(self.subdir)

	def _candidates(self, cert_root: Path) -> list[Path]:
		found: list[Path] = []
		for dirpath, dirnames, filenames in os.walk(cert_root):
			dirnames.sort()
			for name in sorted(filenames):
				if not name.endswith(CERT_SUFFIXES):
					continue
				path = Path(dirpath) / name
				# Symlinked files must resolve inside the sandbox as well
				if not is_within(os.path.realpath(path), self.guard.root):
					_log.debug("CERT_SCAN skip %s: resolves outside sandbox", name)
					continue
				if path.is_file():
					found.append(path)
		return found

	async def scan(self, cert_root: Path | None = None) -> list[CertificateRecord]:
		root = Path(cert_root) if cert_root is not None else self.cert_root
		if not is_within(root, self.guard.root):
			raise SandboxViolation("Certificate directory escapes sandbox")
		if not root.is_dir():
			return []

		now = self._clock()
		records: list[CertificateRecord] = []
		for path in await asyncio.to_thread(self._candidates, root):
			fields = await self.reader.read(path)
			if fields is None:
				_log.debug("CERT_SCAN skip %s: not a parseable certificate", path.name)
				continue
			key_path = path.with_suffix(KEY_SUFFIX)
			rel = self.guard.relative(path)
			records.append(CertificateRecord(
				domain=fields.common_name,
				is_wildcard=fields.common_name.startswith("*."),
				path=rel,
				cert_file=rel,
				key_file=self.guard.relative(key_path) if key_path.is_file() else None,
				not_before=fields.not_before.isoformat(),
				not_after=fields.not_after.isoformat(),
				days_left=days_remaining(fields.not_after, now),
			))
		return records


def delete_certificate(
	store: SandboxedFileStore,
	subdir: str,
	cert_file: str,
	key_file: Optional[str] = None,
) -> list[dict]:
	"""Delete a certificate and, optionally, its key.

	Both paths are confined to the certificate subtree before anything is
	removed. A missing certificate counts as deleted. A failure to delete
	the key is returned as a warning instead of being raised.
	"""
	if not cert_file:
		raise InvalidRequest("Certificate file path is required")
	guard = store.guard
	cert_root = guard.resolve(subdir)
	real_cert_root = os.path.realpath(cert_root)

	targets = [cert_file] + ([key_file] if key_file else [])
	for user_path in targets:
		resolved = guard.resolve(user_path)
		if resolved == cert_root or not is_within(resolved, cert_root):
			raise SandboxViolation(f"{user_path}: must be inside the {subdir} directory")
		# A symlinked directory under the subtree must not lead elsewhere
		if not is_within(os.path.realpath(resolved.parent), real_cert_root):
			raise SandboxViolation(f"{user_path}: must be inside the {subdir} directory")
		if resolved.is_dir() and not resolved.is_symlink():
			raise InvalidRequest(f"{guard.relative(resolved)}: is a directory")

	store.delete(cert_file)
	_log.info("CERT_DELETE cert=%s", guard.relative(guard.resolve(cert_file)))

	warnings: list[dict] = []
	if key_file:
		try:
			store.delete(key_file)
		except NginxDeskError as exc:
			_log.warning("CERT_DELETE failed to delete key %s: %s", key_file, exc.message)
			warnings.append(PartialArtifactFailure(f"Key file not deleted: {exc.message}").to_dict())
	return warnings
