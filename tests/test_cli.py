from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from biblookup import cli
from biblookup.records.lookup import LookupItem
from biblookup.services import LookupService

runner = CliRunner()
ISBN = "isbn:9780306406157"


def use_services(monkeypatch, *services) -> None:
    monkeypatch.setattr(cli, "build_lookup_service", lambda client, settings: LookupService(services))


def test_config_json_flag(tmp_path, monkeypatch):
    data_dir = tmp_path / "biblookup-data"
    monkeypatch.setenv("BIBLOOKUP_DATA_DIR", str(data_dir))
    monkeypatch.setenv("BIBLOOKUP_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("BIBLOOKUP_CROSSREF_PRIORITY", "5")

    result = runner.invoke(cli.app, ["config", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout.strip())
    assert Path(payload["data_dir"]) == data_dir
    assert payload["log_level"] == "WARNING"
    assert payload["services"]["crossref"]["priority"] == 5
    assert data_dir.exists()


def test_lookup_json_prints_envelopes(tmp_path, monkeypatch, dummy_service):
    monkeypatch.setenv("BIBLOOKUP_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BIBLOOKUP_LOG_LEVEL", "WARNING")
    use_services(monkeypatch, dummy_service("books", [LookupItem(dc_title="Dune", dc_identifier=[ISBN])]))

    result = runner.invoke(cli.app, ["lookup", ISBN, "--json"])

    assert result.exit_code == 0
    envelopes = [json.loads(line) for line in result.stdout.splitlines() if line.strip()]
    assert [envelope["status"] for envelope in envelopes] == ["STARTING", "PARTIAL", "COMPLETE"]
    assert envelopes[-1]["data"]["items"][ISBN][0]["dc_title"] == "Dune"


def test_lookup_prints_table(tmp_path, monkeypatch, dummy_service):
    monkeypatch.setenv("BIBLOOKUP_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BIBLOOKUP_LOG_LEVEL", "WARNING")
    use_services(monkeypatch, dummy_service("books", [LookupItem(dc_title="Dune", dc_identifier=[ISBN])]))

    result = runner.invoke(cli.app, ["lookup", ISBN])

    assert result.exit_code == 0
    assert "Lookup Results" in result.stdout
    assert "Dune" in result.stdout


def test_lookup_with_unknown_service_fails(tmp_path, monkeypatch, dummy_service):
    monkeypatch.setenv("BIBLOOKUP_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BIBLOOKUP_LOG_LEVEL", "WARNING")
    use_services(monkeypatch, dummy_service("books"))

    result = runner.invoke(cli.app, ["lookup", ISBN, "--service", "nowhere"])

    assert result.exit_code == 1
    assert "unknown lookup service" in result.stdout
