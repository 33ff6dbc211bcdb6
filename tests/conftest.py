"""Shared fixtures: a sandboxed nginx root, a Config factory and a fake acme.sh."""

from __future__ import annotations

import os
import stat
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)

if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)

from nginxdesk.sandbox import PathGuard, SandboxedFileStore  # noqa: E402
from nginxdesk.utils.config import Config  # noqa: E402

# Behaviour is selected through FAKE_ACME_MODE:
#   ok    - issue the certificate into $LE_WORKING_DIR/<primary>_ecc
#   nokey - issue only fullchain.cer
#   fail  - exit 1
#   hang  - fork a long sleep and wait for it
FAKE_ACME_SCRIPT = """#!/bin/sh
echo "acme.sh $*"
if [ -n "$FAKE_ACME_RECORD" ]; then
    printf '%s\\n' "$@" > "$FAKE_ACME_RECORD"
    env > "$FAKE_ACME_RECORD.env"
fi
primary=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "--domain" ] && [ -z "$primary" ]; then
        primary="$arg"
    fi
    prev="$arg"
done
dir="$LE_WORKING_DIR/${primary}_ecc"
case "${FAKE_ACME_MODE:-ok}" in
    fail)
        echo "Verify error: invalid response from server"
        exit 1
        ;;
    hang)
        echo "Waiting for DNS propagation"
        sleep 30 &
        if [ -n "$FAKE_ACME_PIDFILE" ]; then
            echo $! > "$FAKE_ACME_PIDFILE"
        fi
        wait
        exit 0
        ;;
    nokey)
        mkdir -p "$dir"
        echo "FULLCHAIN for $primary" > "$dir/fullchain.cer"
        echo "Cert success."
        exit 0
        ;;
    *)
        mkdir -p "$dir"
        echo "FULLCHAIN for $primary" > "$dir/fullchain.cer"
        echo "KEY for $primary" > "$dir/$primary.key"
        echo "Cert success."
        exit 0
        ;;
esac
"""


@pytest.fixture
def root(tmp_path: Path) -> Path:
    path = tmp_path / "nginx"
    path.mkdir()
    return Path(os.path.realpath(path))


@pytest.fixture
def guard(root: Path) -> PathGuard:
    return PathGuard(root)


@pytest.fixture
def store(guard: PathGuard) -> SandboxedFileStore:
    return SandboxedFileStore(guard)


@pytest.fixture
def fake_acme(tmp_path: Path) -> Path:
    script = tmp_path / "bin" / "acme.sh"
    script.parent.mkdir()
    script.write_text(FAKE_ACME_SCRIPT, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def make_config(tmp_path: Path, root: Path, fake_acme: Path):
    def _make(**overrides) -> Config:
        values = dict(
            base_dir=tmp_path,
            config_dir=root,
            data_dir=tmp_path / "data",
            acme_bin=str(fake_acme),
            acme_home=tmp_path / "acme",
            acme_webroot=tmp_path / "webroot",
            cert_log_path=tmp_path / "log" / "cert-obtain.log",
            system_nginx_conf=tmp_path / "system" / "nginx.conf",
            cert_reader="cryptography",
            rate_limit=False,
        )
        values.update(overrides)
        return Config(**values)

    return _make


@pytest.fixture
def config(make_config) -> Config:
    return make_config()


def make_certificate(
    common_name: str,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> tuple[bytes, bytes]:
    """Return (certificate PEM, key PEM) for a self-signed EC certificate."""
    now = datetime.now(timezone.utc)
    not_before = not_before or now - timedelta(days=1)
    not_after = not_after or now + timedelta(days=90)
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert.public_bytes(serialization.Encoding.PEM), key_pem


@pytest.fixture
def cert_factory():
    return make_certificate
