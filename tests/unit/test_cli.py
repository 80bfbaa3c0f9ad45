import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import yaml
from click.testing import CliRunner

from jobmonitor.cli import cli
from jobmonitor.persistence import ActiveJobRecord, FileJobRepository, FileJobRepositoryConfig


def _write_config(tmp_path: Path) -> Path:
    config = {
        "monitor": {"namespace": "ort", "lost_jobs_min_age_seconds": 30},
        "cluster": {"class_name": "FakeClusterClient"},
        "sender": {"class_name": "InMemoryMessageSender"},
        "repositories": {
            "analyzer": {"class_name": "FileJobRepository", "state_dir": str(tmp_path / "analyzer")},
        },
    }
    config_path = tmp_path / "monitor.yaml"
    config_path.write_text(yaml.safe_dump(config))
    return config_path


def test_cli_show_config(tmp_path: Path) -> None:
    config = _write_config(tmp_path)
    runner = CliRunner()
    result = runner.invoke(
        cli, ["show-config", str(config), "--json-output", "--override", "monitor.namespace=workers"]
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["monitor"]["namespace"] == "workers"
    assert data["cluster"]["class_name"] == "FakeClusterClient"


def test_cli_show_config_yaml(tmp_path: Path) -> None:
    config = _write_config(tmp_path)
    result = CliRunner().invoke(cli, ["show-config", str(config)])
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(result.output)["monitor"]["namespace"] == "ort"


def test_cli_show_config_invalid(tmp_path: Path) -> None:
    config_path = tmp_path / "broken.yaml"
    config_path.write_text(yaml.safe_dump({"sender": {"class_name": "Carrier pigeon"}}))
    result = CliRunner().invoke(cli, ["show-config", str(config_path)])
    assert result.exit_code != 0
    assert "Unable to parse config" in result.output


def test_cli_missing_config(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["reap", str(tmp_path / "missing.yaml")])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_cli_reap_empty_cluster(tmp_path: Path) -> None:
    config = _write_config(tmp_path)
    result = CliRunner().invoke(cli, ["reap", str(config)])
    assert result.exit_code == 0, result.output
    assert "Processed 0 completed jobs." in result.output


def test_cli_find_lost(tmp_path: Path) -> None:
    config = _write_config(tmp_path)
    repository = FileJobRepository(FileJobRepositoryConfig(state_dir=str(tmp_path / "analyzer")))
    created = datetime.now(timezone.utc) - timedelta(hours=1)
    repository.upsert(ActiveJobRecord(run_id=21, created_at=created))
    repository.upsert(ActiveJobRecord(run_id=22, created_at=datetime.now(timezone.utc)))

    result = CliRunner().invoke(cli, ["find-lost", str(config), "--json-output"])

    assert result.exit_code == 0, result.output
    lines = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
    assert lines == [{"worker": "analyzer", **ActiveJobRecord(run_id=21, created_at=created).to_dict()}]
