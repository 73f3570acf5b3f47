"""
Tests for artifact download, checksum verification and schema loading.
"""

import hashlib
import http.client
import io
import logging
import urllib.error
from pathlib import Path

import pytest

from provision.adapters.mock import MockCommandRunner
from provision.core.errors import CommandNotFoundError, ConfigError, NetworkError, StepFailedError
from provision.core.models import SchemaSpec
from provision.core.services import artifacts
from provision.core.services.artifacts import download_artifact, verify_checksum
from provision.core.services.schema import load_schema, schema_command

PAYLOAD = b"PK\x03\x04 fake zip contents"
PAYLOAD_SHA = hashlib.sha256(PAYLOAD).hexdigest()


@pytest.fixture
def serve(monkeypatch):
    """Make urlopen answer with ``PAYLOAD`` (or raise ``error``)."""
    calls = []

    def install(error: Exception | None = None, body: bytes = PAYLOAD):
        def fake_urlopen(req, timeout):
            calls.append((req.full_url, timeout, req.get_header("User-agent")))
            if error is not None:
                raise error
            return io.BytesIO(body)

        monkeypatch.setattr(artifacts.urllib.request, "urlopen", fake_urlopen)
        return calls

    return install


# ── Download Tests ───────────────────────────────────────────────────


class TestDownload:
    def test_downloads_to_dest(self, serve, tmp_path: Path):
        calls = serve()
        dest = tmp_path / "cart.zip"

        assert download_artifact("https://a.test/cart.zip", dest, timeout=7) == dest

        assert dest.read_bytes() == PAYLOAD
        assert not (tmp_path / "cart.zip.part").exists()
        assert calls == [("https://a.test/cart.zip", 7, artifacts.USER_AGENT)]

    def test_checksum_match(self, serve, tmp_path: Path):
        serve()
        dest = download_artifact("https://a.test/x.zip", tmp_path / "x.zip", sha256=PAYLOAD_SHA)
        assert dest.is_file()

    def test_checksum_mismatch(self, serve, tmp_path: Path):
        serve()
        dest = tmp_path / "x.zip"

        with pytest.raises(StepFailedError) as exc:
            download_artifact("https://a.test/x.zip", dest, sha256="0" * 64)

        assert "Checksum mismatch" in str(exc.value)
        assert not dest.exists()
        assert not (tmp_path / "x.zip.part").exists()

    def test_unverified_warns(self, serve, tmp_path: Path, caplog):
        serve()
        with caplog.at_level(logging.WARNING, logger="provision.core.services.artifacts"):
            download_artifact("https://a.test/x.zip", tmp_path / "x.zip")
        assert "No checksum published" in caplog.text
        assert PAYLOAD_SHA in caplog.text

    def test_http_error(self, serve, tmp_path: Path):
        serve(urllib.error.HTTPError("https://a.test/x.zip", 404, "Not Found", {}, None))

        with pytest.raises(NetworkError) as exc:
            download_artifact("https://a.test/x.zip", tmp_path / "x.zip")

        assert "HTTP 404" in str(exc.value)
        assert not (tmp_path / "x.zip").exists()

    def test_connection_error(self, serve, tmp_path: Path):
        serve(urllib.error.URLError("Name or service not known"))
        with pytest.raises(NetworkError):
            download_artifact("https://a.test/x.zip", tmp_path / "x.zip")

    def test_timeout(self, serve, tmp_path: Path):
        serve(TimeoutError("timed out"))
        with pytest.raises(NetworkError):
            download_artifact("https://a.test/x.zip", tmp_path / "x.zip")

    def test_truncated_response(self, serve, tmp_path: Path):
        serve(http.client.IncompleteRead(b"PK", 100))
        with pytest.raises(NetworkError) as exc:
            download_artifact("https://a.test/x.zip", tmp_path / "x.zip")
        assert "IncompleteRead" in str(exc.value)

    def test_unwritable_destination(self, serve, tmp_path: Path):
        calls = serve()
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with pytest.raises(StepFailedError) as exc:
            download_artifact("https://a.test/x.zip", blocker / "x.zip")

        assert "Cannot create download directory" in str(exc.value)
        assert calls == []

    def test_unsupported_checksum_rejected_before_download(self, serve, tmp_path: Path):
        calls = serve()

        with pytest.raises(ConfigError) as exc:
            download_artifact("https://a.test/x.zip", tmp_path / "x.zip", sha256="sha3:abcd")

        assert "unsupported checksum algorithm" in str(exc.value)
        assert exc.value.exit_code == 2
        assert calls == []


class TestVerifyChecksum:
    def test_algo_prefix(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(PAYLOAD)
        assert verify_checksum(path, f"sha256:{PAYLOAD_SHA}")
        assert verify_checksum(path, f"md5:{hashlib.md5(PAYLOAD).hexdigest()}")

    def test_uppercase_digest(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(PAYLOAD)
        assert verify_checksum(path, PAYLOAD_SHA.upper())

    def test_malformed_digest(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(PAYLOAD)
        with pytest.raises(ConfigError):
            verify_checksum(path, "sha256:not-hex")


# ── Schema Tests ─────────────────────────────────────────────────────


class TestSchema:
    def test_mongosh_preferred(self):
        spec = SchemaSpec(engine="mongo", host="mongodb.local", file="x.js")
        assert schema_command(MockCommandRunner(), spec) == [
            "mongosh", "--host", "mongodb.local", "--port", "27017", "--quiet",
        ]

    def test_legacy_mongo_fallback(self):
        spec = SchemaSpec(engine="mongo", host="db", file="x.js")
        runner = MockCommandRunner(binaries={"mongo"})
        assert schema_command(runner, spec)[0] == "mongo"

    def test_no_client(self):
        spec = SchemaSpec(engine="mongo", host="db", file="x.js")
        with pytest.raises(CommandNotFoundError):
            schema_command(MockCommandRunner(binaries=set()), spec)

    def test_mysql_password_in_env_not_argv(self, tmp_path: Path):
        schema = tmp_path / "shipping.sql"
        schema.write_text("CREATE DATABASE cities;\n")
        runner = MockCommandRunner()
        captured = {}
        original = runner.run

        def spy(argv, **kwargs):
            captured.update(kwargs)
            return original(argv, **kwargs)

        runner.run = spy
        spec = SchemaSpec(engine="mysql", host="mysql.local", file=str(schema))

        result = load_schema(runner, spec, password="RoboShop@1")

        assert result.ok
        assert runner.call_log == [["mysql", "-h", "mysql.local", "-P", "3306", "-u", "root"]]
        assert runner.inputs == ["CREATE DATABASE cities;\n"]
        assert captured["env"] == {"MYSQL_PWD": "RoboShop@1"}

    def test_missing_schema_file(self, tmp_path: Path):
        spec = SchemaSpec(engine="mongo", host="db", file=str(tmp_path / "none.js"))
        with pytest.raises(StepFailedError):
            load_schema(MockCommandRunner(), spec)

    def test_client_failure_returned(self, tmp_path: Path):
        schema = tmp_path / "catalogue.js"
        schema.write_text("db.products.insert({})\n")
        runner = MockCommandRunner()
        runner.set_failure(("mongosh",), return_code=1, stderr="MongoNetworkError: connect ECONNREFUSED")

        result = load_schema(runner, SchemaSpec(engine="mongo", host="db", file=str(schema)))

        assert result.return_code == 1
        assert "ECONNREFUSED" in result.message
