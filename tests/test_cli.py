import json
from pathlib import Path

import pytest

from mcpui import __main__ as cli
from mcpui.auth.signing import create_signer
from mcpui.auth.tokens import TokenService


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"log_file: {tmp_path / 'mcpui.log'}\n"
        "issuer: cli-host\n"
        "jwks_url: https://cli.example/jwks\n"
        "signing_algorithm: EdDSA\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda _config: None)


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    path = tmp_path / "signing.pem"
    path.write_bytes(create_signer("EdDSA", key_id="cli-key").private_pem())
    return path


def test_jwks_prints_public_key_set(config_path: Path, key_file: Path, capsys) -> None:
    exit_code = cli.main(["--config", str(config_path), "jwks", "--private-key", str(key_file), "--key-id", "cli-key"])

    document = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert document["keys"][0]["kid"] == "cli-key"
    assert document["keys"][0]["alg"] == "EdDSA"


def test_issue_then_decode(config_path: Path, key_file: Path, capsys) -> None:
    exit_code = cli.main(
        [
            "--config",
            str(config_path),
            "issue",
            "--private-key",
            str(key_file),
            "--sub",
            "user-1",
            "--aud",
            "chart",
            "--scope",
            "a",
            "--scope",
            "b",
            "--expires",
            "60",
        ]
    )
    token = capsys.readouterr().out.strip()
    assert exit_code == 0

    assert cli.main(["--config", str(config_path), "decode", token]) == 0
    decoded = json.loads(capsys.readouterr().out)
    assert decoded["header"]["alg"] == "EdDSA"
    assert decoded["payload"]["iss"] == "cli-host"
    assert decoded["payload"]["scope"] == ["a", "b"]


def test_issue_rejects_non_positive_expiry(config_path: Path, key_file: Path, capsys) -> None:
    exit_code = cli.main(
        [
            "--config",
            str(config_path),
            "issue",
            "--private-key",
            str(key_file),
            "--sub",
            "u",
            "--aud",
            "chart",
            "--expires",
            "0",
        ]
    )

    assert exit_code == 1
    assert "expiry_seconds must be positive" in capsys.readouterr().err


def test_decode_reports_malformed_token(config_path: Path, capsys) -> None:
    assert cli.main(["--config", str(config_path), "decode", "nope"]) == 1
    assert "Invalid token format" in capsys.readouterr().err


def test_validate_uses_configured_key_set_url(config_path: Path, monkeypatch, capsys) -> None:
    service = TokenService(issuer="cli-host", jwks_url="https://cli.example/jwks", signer=create_signer("EdDSA"))
    fetched = []

    class _FakeFetcher:
        def __init__(self, **_kwargs) -> None:
            pass

        def fetch(self, jwks_url):
            fetched.append(jwks_url)
            return service.publish_key_set()

    monkeypatch.setattr(cli, "KeySetFetcher", _FakeFetcher)

    assert cli.main(["--config", str(config_path), "validate", service.issue("u", "chart", ["x"])]) == 0
    assert capsys.readouterr().out.strip() == "valid: scopes=x"
    assert fetched == ["https://cli.example/jwks"]

    assert cli.main(["--config", str(config_path), "validate", "a.b.c"]) == 1
    assert capsys.readouterr().err.startswith("invalid: malformed token")
