from __future__ import annotations

import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from nginxdesk.certs.inventory import (
    CertificateInventoryScanner,
    CryptographyReader,
    OpenSSLReader,
    days_remaining,
    delete_certificate,
    parse_openssl_output,
)
from nginxdesk.errors import InvalidRequest, PermissionDenied, SandboxViolation
from nginxdesk.sandbox import PathGuard, SandboxedFileStore

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _install(root: Path, rel: str, pem: bytes) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(pem)
    return path


def _scanner(guard: PathGuard, reader=None) -> CertificateInventoryScanner:
    return CertificateInventoryScanner(guard, reader or CryptographyReader(), clock=lambda: NOW)


class TestParseOpenSSLOutput:
    def test_openssl3_spacing(self) -> None:
        text = (
            "subject=CN = example.com\n"
            "notBefore=Jan  5 08:00:00 2026 GMT\n"
            "notAfter=Apr  5 08:00:00 2026 GMT\n"
        )
        fields = parse_openssl_output(text)
        assert fields is not None
        assert fields.common_name == "example.com"
        assert fields.not_before == datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
        assert fields.not_after == datetime(2026, 4, 5, 8, 0, tzinfo=timezone.utc)

    def test_compact_and_multi_rdn_subject(self) -> None:
        text = (
            "subject=C=DE, O=Example, CN=*.example.org\n"
            "notBefore=Dec 31 23:59:59 2025 GMT\n"
            "notAfter=Mar 31 23:59:59 2026 GMT\n"
        )
        fields = parse_openssl_output(text)
        assert fields is not None
        assert fields.common_name == "*.example.org"

    def test_legacy_slash_subject(self) -> None:
        text = "subject= /CN=legacy.example.net\nnotBefore=Jan 1 00:00:00 2026 GMT\nnotAfter=Feb 1 00:00:00 2026 GMT\n"
        fields = parse_openssl_output(text)
        assert fields is not None
        assert fields.common_name == "legacy.example.net"

    def test_missing_dates_is_unparseable(self) -> None:
        assert parse_openssl_output("subject=CN = example.com\n") is None
        assert parse_openssl_output("unable to load certificate\n") is None


def test_days_remaining_truncates_toward_zero() -> None:
    assert days_remaining(NOW + timedelta(days=10, hours=23), NOW) == 10
    assert days_remaining(NOW - timedelta(days=1, hours=12), NOW) == -1
    assert days_remaining(NOW + timedelta(hours=5), NOW) == 0


@pytest.mark.asyncio
async def test_scan_builds_records(guard: PathGuard, root: Path, cert_factory) -> None:
    cert, key = cert_factory("example.com", NOW - timedelta(days=30), NOW + timedelta(days=60, hours=6))
    _install(root, "ssl/example.com.crt", cert)
    _install(root, "ssl/example.com.key", key)
    wildcard, _ = cert_factory("*.example.org", NOW - timedelta(days=1), NOW + timedelta(days=5))
    _install(root, "ssl/nested/example.org.pem", wildcard)

    records = await _scanner(guard).scan()

    assert [r.cert_file for r in records] == ["/ssl/example.com.crt", "/ssl/nested/example.org.pem"]
    first, second = records
    assert first.domain == "example.com"
    assert first.is_wildcard is False
    assert first.key_file == "/ssl/example.com.key"
    assert first.days_left == 60
    assert first.path == "/ssl/example.com.crt"
    assert second.domain == "*.example.org"
    assert second.is_wildcard is True
    assert second.key_file is None
    assert second.days_left == 5


@pytest.mark.asyncio
async def test_record_serializes_with_aliases(guard: PathGuard, root: Path, cert_factory) -> None:
    cert, _ = cert_factory("example.com")
    _install(root, "ssl/example.com.crt", cert)
    [record] = await _scanner(guard).scan()
    data = record.model_dump(by_alias=True)
    assert {"domain", "isWildcard", "certFile", "keyFile", "notBefore", "notAfter", "daysLeft"} <= set(data)


@pytest.mark.asyncio
async def test_expired_certificate_has_negative_days(guard: PathGuard, root: Path, cert_factory) -> None:
    cert, _ = cert_factory("old.example.com", NOW - timedelta(days=100), NOW - timedelta(days=3, hours=1))
    _install(root, "ssl/old.crt", cert)
    [record] = await _scanner(guard).scan()
    assert record.days_left == -3


@pytest.mark.asyncio
async def test_unparseable_and_foreign_files_are_skipped(guard: PathGuard, root: Path, cert_factory) -> None:
    cert, key = cert_factory("good.example.com")
    _install(root, "ssl/good.crt", cert)
    _install(root, "ssl/broken.pem", b"-----BEGIN CERTIFICATE-----\nnot base64\n-----END CERTIFICATE-----\n")
    _install(root, "ssl/readme.txt", b"hello")
    _install(root, "ssl/good.key", key)

    records = await _scanner(guard).scan()

    assert [r.domain for r in records] == ["good.example.com"]


@pytest.mark.asyncio
async def test_missing_cert_dir_is_empty(guard: PathGuard) -> None:
    assert await _scanner(guard).scan() == []


@pytest.mark.asyncio
async def test_symlink_escaping_root_is_skipped(guard: PathGuard, root: Path, tmp_path: Path, cert_factory) -> None:
    cert, _ = cert_factory("outside.example.com")
    outside = tmp_path / "outside.crt"
    outside.write_bytes(cert)
    (root / "ssl").mkdir()
    os.symlink(outside, root / "ssl" / "outside.crt")

    assert await _scanner(guard).scan() == []


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("openssl") is None, reason="openssl binary not installed")
async def test_openssl_reader_matches_cryptography(guard: PathGuard, root: Path, cert_factory) -> None:
    cert, _ = cert_factory("example.com", NOW - timedelta(days=1), NOW + timedelta(days=30))
    path = _install(root, "ssl/example.com.crt", cert)

    via_openssl = await OpenSSLReader().read(path)
    via_cryptography = await CryptographyReader().read(path)

    assert via_openssl == via_cryptography


class TestDeleteCertificate:
    def test_deletes_cert_and_key(self, store: SandboxedFileStore, root: Path) -> None:
        _install(root, "ssl/a.crt", b"c")
        _install(root, "ssl/a.key", b"k")
        assert delete_certificate(store, "ssl", "/ssl/a.crt", "/ssl/a.key") == []
        assert not (root / "ssl" / "a.crt").exists()
        assert not (root / "ssl" / "a.key").exists()

    def test_missing_certificate_is_success(self, store: SandboxedFileStore, root: Path) -> None:
        (root / "ssl").mkdir()
        assert delete_certificate(store, "ssl", "/ssl/gone.crt") == []

    def test_paths_outside_ssl_subtree_rejected(self, store: SandboxedFileStore, root: Path) -> None:
        _install(root, "ssl/a.crt", b"c")
        _install(root, "nginx.conf", b"events {}")
        with pytest.raises(SandboxViolation):
            delete_certificate(store, "ssl", "/nginx.conf")
        with pytest.raises(SandboxViolation):
            delete_certificate(store, "ssl", "/ssl/a.crt", "/nginx.conf")
        # Nothing was deleted before the key path was rejected
        assert (root / "ssl" / "a.crt").exists()
        assert (root / "nginx.conf").exists()

    def test_sibling_prefix_directory_rejected(self, store: SandboxedFileStore, root: Path) -> None:
        _install(root, "ssl-backup/a.crt", b"c")
        with pytest.raises(SandboxViolation):
            delete_certificate(store, "ssl", "/ssl-backup/a.crt")

    def test_symlinked_directory_leading_out_of_ssl_rejected(self, store: SandboxedFileStore, root: Path) -> None:
        _install(root, "conf.d/site.conf", b"server {}")
        (root / "ssl").mkdir()
        (root / "ssl" / "x").symlink_to(root / "conf.d")
        with pytest.raises(SandboxViolation):
            delete_certificate(store, "ssl", "/ssl/x/site.conf")
        assert (root / "conf.d" / "site.conf").exists()

    def test_directory_rejected(self, store: SandboxedFileStore, root: Path) -> None:
        (root / "ssl" / "sub").mkdir(parents=True)
        with pytest.raises(InvalidRequest):
            delete_certificate(store, "ssl", "/ssl/sub")

    def test_key_failure_is_warning(self, store: SandboxedFileStore, root: Path, monkeypatch) -> None:
        _install(root, "ssl/a.crt", b"c")
        _install(root, "ssl/a.key", b"k")
        real_delete = store.delete

        def _delete(path: str) -> bool:
            if path.endswith(".key"):
                raise PermissionDenied(f"{path}: permission denied")
            return real_delete(path)

        monkeypatch.setattr(store, "delete", _delete)

        warnings = delete_certificate(store, "ssl", "/ssl/a.crt", "/ssl/a.key")

        assert not (root / "ssl" / "a.crt").exists()
        assert (root / "ssl" / "a.key").exists()
        assert len(warnings) == 1
        assert warnings[0]["error"] == "PartialArtifactFailure"
