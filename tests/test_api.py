from __future__ import annotations

import stat
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from nginxdesk import create_app
from nginxdesk.utils.config import Config


@pytest.fixture
def client(config: Config):
    with TestClient(create_app(config)) as test_client:
        yield test_client


@pytest.fixture
def fake_nginx(tmp_path: Path) -> Path:
    script = tmp_path / "bin" / "nginx"
    script.parent.mkdir(exist_ok=True)
    script.write_text(
        '#!/bin/sh\n'
        'if [ "$1" = "-t" ]; then\n'
        '    echo "nginx: configuration file test is successful" >&2\n'
        '    exit 0\n'
        'fi\n'
        'echo "nginx: [error] invalid PID number" >&2\n'
        'exit 1\n',
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


class TestFiles:
    def test_write_list_read(self, client: TestClient, root: Path) -> None:
        resp = client.post("/api/file/write", json={"path": "/nginx.conf", "content": "events {}\n"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

        listing = client.get("/api/files", params={"path": "/"}).json()["data"]
        assert [e["name"] for e in listing] == ["nginx.conf"]
        assert listing[0]["isDir"] is False
        assert listing[0]["path"] == "/nginx.conf"

        read = client.get("/api/file/read", params={"path": "/nginx.conf"})
        assert read.status_code == 200
        assert read.headers["content-type"].startswith("text/plain")
        assert read.text == "events {}\n"

    def test_request_id_round_trip(self, client: TestClient) -> None:
        resp = client.get("/api/files", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"
        generated = client.get("/api/files", headers={"X-Request-ID": "bad id with spaces"})
        assert generated.headers["X-Request-ID"] != "bad id with spaces"

    def test_create_rename_move_symlink_delete(self, client: TestClient, root: Path) -> None:
        assert client.post("/api/file/create", json={"path": "/sites-available", "isDir": True}).json()["created"]
        assert client.post("/api/file/create", json={"path": "/sites-enabled", "isDir": True}).status_code == 200
        assert client.post("/api/file/create", json={"path": "/draft.conf"}).status_code == 200

        renamed = client.post("/api/file/rename", json={"oldPath": "/draft.conf", "newPath": "/site.conf"})
        assert renamed.json()["path"] == "/site.conf"

        moved = client.post("/api/file/move", json={"sourcePath": "/site.conf", "targetPath": "/sites-available"})
        assert moved.json()["path"] == "/sites-available/site.conf"

        linked = client.post(
            "/api/file/symlink",
            json={"linkPath": "/sites-enabled/site.conf", "targetPath": "/sites-available/site.conf"},
        )
        assert linked.json()["target"] == "../sites-available/site.conf"

        deleted = client.post("/api/file/delete", json={"path": "/sites-enabled/site.conf"})
        assert deleted.json()["deleted"] is True
        assert (root / "sites-available" / "site.conf").exists()

        again = client.post("/api/file/delete", json={"path": "/sites-enabled/site.conf"})
        assert again.status_code == 200
        assert again.json()["deleted"] is False

    def test_sandbox_violation_is_403(self, client: TestClient, root: Path) -> None:
        resp = client.get("/api/file/read", params={"path": "/../../etc/passwd"})
        assert resp.status_code == 403
        body = resp.json()
        assert body["status"] == "error"
        assert body["error"] == "SandboxViolation"
        assert str(root) not in resp.text

    def test_not_found_is_404(self, client: TestClient) -> None:
        resp = client.get("/api/file/read", params={"path": "/missing.conf"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"

    def test_conflict_is_409(self, client: TestClient, root: Path) -> None:
        (root / "conf.d").mkdir()
        resp = client.post("/api/file/create", json={"path": "/conf.d", "isDir": False})
        assert resp.status_code == 409
        assert resp.json()["error"] == "Conflict"

    def test_malformed_body_is_invalid_request(self, client: TestClient) -> None:
        resp = client.post("/api/file/rename", json={"oldPath": "/a"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "InvalidRequest"
        assert "newPath" in body["message"]


class TestLogs:
    def test_access_log_from_root_config(self, client: TestClient, root: Path, tmp_path: Path) -> None:
        log = tmp_path / "access.log"
        log.write_text("".join(f"GET /{i}\n" for i in range(200)), encoding="utf-8")
        (root / "nginx.conf").write_text(f"access_log {log} combined;\n", encoding="utf-8")

        resp = client.get("/api/logs/access")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        lines = resp.text.splitlines()
        assert len(lines) == 100
        assert lines[-1] == "GET /199"

        assert client.get("/api/logs/access", params={"lines": 3}).text == "GET /197\nGET /198\nGET /199\n"

    def test_unreadable_log_is_reported_inline(self, client: TestClient, root: Path, tmp_path: Path) -> None:
        (root / "nginx.conf").write_text(f"error_log {tmp_path / 'nope.log'};\n", encoding="utf-8")
        resp = client.get("/api/logs/error")
        assert resp.status_code == 200
        assert resp.text.startswith("Error reading log:")

    def test_cert_obtain_log(self, client: TestClient, config: Config) -> None:
        config.cert_log_path.parent.mkdir(parents=True, exist_ok=True)
        config.cert_log_path.write_text("2026-01-01T00:00:00Z: hello\n", encoding="utf-8")
        resp = client.get("/api/logs/cert-obtain")
        assert resp.text == "2026-01-01T00:00:00Z: hello\n"


class TestNginx:
    def test_test_and_reload(self, make_config, fake_nginx: Path) -> None:
        cfg = make_config(nginx_bin=str(fake_nginx))
        with TestClient(create_app(cfg)) as client:
            tested = client.post("/api/nginx/test").json()
            assert tested["success"] is True
            assert "test is successful" in tested["output"]

            reloaded = client.post("/api/nginx/reload").json()
            assert reloaded["success"] is False
            assert "invalid PID" in reloaded["output"]

    def test_missing_binary(self, make_config, tmp_path: Path) -> None:
        cfg = make_config(nginx_bin=str(tmp_path / "no-nginx"))
        with TestClient(create_app(cfg)) as client:
            body = client.post("/api/nginx/test").json()
        assert body["success"] is False
        assert body["output"]


class TestCertificates:
    def test_list_certificates(self, client: TestClient, root: Path, cert_factory) -> None:
        cert, key = cert_factory("example.com")
        (root / "ssl").mkdir()
        (root / "ssl" / "example.com.crt").write_bytes(cert)
        (root / "ssl" / "example.com.key").write_bytes(key)

        data = client.get("/api/certificates").json()["data"]

        assert len(data) == 1
        assert data[0]["domain"] == "example.com"
        assert data[0]["certFile"] == "/ssl/example.com.crt"
        assert data[0]["keyFile"] == "/ssl/example.com.key"
        assert data[0]["isWildcard"] is False
        assert 88 <= data[0]["daysLeft"] <= 90

    def test_certificate_without_key_omits_key_file(self, client: TestClient, root: Path, cert_factory) -> None:
        cert, _ = cert_factory("*.example.org")
        (root / "ssl").mkdir()
        (root / "ssl" / "wild.pem").write_bytes(cert)

        data = client.get("/api/certificates").json()["data"]

        assert data[0]["isWildcard"] is True
        assert "keyFile" not in data[0]

    def test_obtain_then_listed_file_exists(self, client: TestClient, root: Path) -> None:
        resp = client.post(
            "/api/certificates/obtain",
            json={"domains": ["example.com"], "email": "admin@example.com", "challenge": "http-01"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["certFile"] == "/ssl/example.com.crt"
        assert body["keyFile"] == "/ssl/example.com.key"
        assert "Cert success." in body["output"]
        assert (root / "ssl" / "example.com.crt").exists()

    def test_obtain_failure_is_502_with_output(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setenv("FAKE_ACME_MODE", "fail")
        resp = client.post("/api/certificates/obtain", json={"domains": ["example.com"], "email": "admin@example.com"})
        assert resp.status_code == 502
        body = resp.json()
        assert body["success"] is False
        assert body["errorKind"] == "ExternalProcessFailure"
        assert "Verify error" in body["output"]

    def test_obtain_timeout_is_504(self, make_config, monkeypatch) -> None:
        monkeypatch.setenv("FAKE_ACME_MODE", "hang")
        with TestClient(create_app(make_config(http_challenge_timeout=0.5))) as client:
            resp = client.post(
                "/api/certificates/obtain",
                json={"domains": ["example.com"], "email": "admin@example.com"},
            )
        assert resp.status_code == 504
        assert "Waiting for DNS propagation" in resp.json()["output"]

    def test_obtain_validation_is_400(self, client: TestClient) -> None:
        resp = client.post(
            "/api/certificates/obtain",
            json={"domains": ["example.com"], "email": "admin@example.com", "challenge": "dns-01"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidRequest"

    def test_delete_certificate(self, client: TestClient, root: Path) -> None:
        (root / "ssl").mkdir()
        (root / "ssl" / "a.crt").write_bytes(b"c")
        (root / "ssl" / "a.key").write_bytes(b"k")

        resp = client.post("/api/certificates/delete", json={"certFile": "/ssl/a.crt", "keyFile": "/ssl/a.key"})

        assert resp.status_code == 200
        assert resp.json()["warnings"] == []
        assert not (root / "ssl" / "a.crt").exists()

    def test_delete_outside_ssl_is_403(self, client: TestClient, root: Path) -> None:
        (root / "nginx.conf").write_text("events {}\n", encoding="utf-8")
        resp = client.post("/api/certificates/delete", json={"certFile": "/nginx.conf"})
        assert resp.status_code == 403
        assert (root / "nginx.conf").exists()
