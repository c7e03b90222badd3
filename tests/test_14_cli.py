"""Tests for the CLI and package metadata."""
from __future__ import annotations

import json

import pytest

from conftest import FakeSpeechProvider, make_config, make_gateway
from translate_ms import cli


class FakeGatewayFactory:
    """Stands in for the Gateway class inside the CLI."""

    def __init__(self, config=None):
        self.config = config

    def from_settings(self, settings, **overrides):
        return make_gateway(self.config, primary=FakeSpeechProvider("google"))


@pytest.fixture
def fake_gateway(monkeypatch):
    factory = FakeGatewayFactory()
    monkeypatch.setattr(cli, "Gateway", factory)
    return factory


def json_line(output: str) -> dict:
    lines = [line for line in output.splitlines() if line.startswith("{")]
    return json.loads(lines[-1])


class TestParseArgs:
    """Argument parsing."""

    def test_translate_args(self):
        """translate options are parsed."""
        args = cli._parse_args(["translate", "hello", "--to", "Vietnamese", "--quality", "4",
                                "--no-pronunciation", "--user", "u1"])
        assert args.command == "translate"
        assert args.text == "hello"
        assert args.target_lang == "Vietnamese"
        assert args.quality == 4
        assert args.no_pronunciation is True
        assert args.user == "u1"

    def test_target_required(self):
        """--to is mandatory."""
        with pytest.raises(SystemExit):
            cli._parse_args(["translate", "hello"])

    def test_speak_mode_choices(self):
        """Unknown modes are rejected."""
        with pytest.raises(SystemExit):
            cli._parse_args(["speak", "hi", "--mode", "loud"])

    def test_help(self, capsys):
        """--help lists the subcommands."""
        with pytest.raises(SystemExit) as exc_info:
            cli._parse_args(["--help"])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "translate" in out and "speak" in out and "serve" in out


class TestMain:
    """End-to-end CLI runs against a faked gateway."""

    def test_translate_text(self, fake_gateway, capsys):
        """Prints the translation and pronunciation."""
        assert cli.main(["translate", "Hello", "--to", "Vietnamese"]) == 0
        out = capsys.readouterr().out
        assert "Xin chào" in out
        assert "[신짜오]" in out

    def test_translate_file_json(self, fake_gateway, capsys, tmp_path):
        """--file translates each non-empty line; --json prints items."""
        inputs = tmp_path / "inputs.txt"
        inputs.write_text("Hello\n\nGoodbye\n", encoding="utf-8")
        assert cli.main(["translate", "--file", str(inputs), "--to", "Vietnamese", "--json"]) == 0
        payload = json_line(capsys.readouterr().out)
        assert payload["ok"] is True
        assert len(payload["items"]) == 2

    def test_missing_input(self, fake_gateway):
        """Neither text nor --file exits with a message."""
        with pytest.raises(SystemExit):
            cli.main(["translate", "--to", "Vietnamese"])

    def test_speak_writes_file(self, fake_gateway, capsys, tmp_path):
        """speak writes MP3 bytes to --out."""
        out_path = tmp_path / "audio" / "hello.mp3"
        assert cli.main(["speak", "Xin chào", "--out", str(out_path), "--json"]) == 0
        assert out_path.read_bytes() == "mp3:google:Xin chào".encode("utf-8")
        payload = json_line(capsys.readouterr().out)
        assert payload["provider"] == "google"
        assert payload["bytes"] == out_path.stat().st_size

    def test_gateway_error_exit_code(self, monkeypatch, capsys):
        """Gateway errors print the error body and exit 1."""
        monkeypatch.setattr(cli, "Gateway", FakeGatewayFactory(make_config(openai_key=None)))
        assert cli.main(["translate", "Hello", "--to", "Vietnamese"]) == 1
        payload = json_line(capsys.readouterr().out)
        assert payload["error"] == "CONFIGURATION_ERROR"


class TestPackage:
    """Package metadata."""

    def test_version(self):
        """__version__ is a dotted string."""
        from translate_ms import __version__

        assert __version__.count(".") == 2

    def test_app_importable(self):
        """The ASGI app exposes the API routes."""
        from translate_ms.main import app

        paths = {getattr(route, "path", None) for route in app.routes}
        assert {"/v1/translate", "/v1/speak", "/v1/speak/chunk", "/health", "/metrics"} <= paths
