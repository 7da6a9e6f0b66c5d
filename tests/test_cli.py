from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from deploywave.cli import cli

CONFIG = {
    "projectName": "shop",
    "pipelineName": "shop-ci",
    "repository": {"host": "github", "name": "acme/shop"},
    "pipeline": [
        {"environment": "dev"},
        {
            "wave": "prod",
            "environments": [{"environment": "us"}, {"environment": "eu"}],
            "preEachEnvironment": ["echo pre"],
        },
    ],
}


def write_config(path: Path, config: dict) -> Path:
    path.write_text(json.dumps(config))
    return path


def test_plan_prints_stages(tmp_path: Path) -> None:
    cfg = write_config(tmp_path / "deploywave.json", CONFIG)
    result = CliRunner().invoke(cli, ["plan", "--config", str(cfg)])

    assert result.exit_code == 0, result.output
    assert "Stages: 3" in result.output
    assert "1. dev" in result.output
    assert "2. wave prod: us, eu (parallel)" in result.output
    assert "$ echo pre" in result.output


def test_synth_writes_definition(tmp_path: Path) -> None:
    cfg = write_config(tmp_path / "deploywave.json", CONFIG)
    out = tmp_path / "pipeline.json"
    result = CliRunner().invoke(cli, ["synth", "--config", str(cfg), "--out", str(out)])

    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text())
    assert data["pipelineName"] == "shop-ci"
    assert data["notificationRules"][0]["name"] == "shop-ci-pipelineFailure"


def test_invalid_config_exits_with_error(tmp_path: Path) -> None:
    bad = dict(CONFIG, pipeline=[{"wave": "prod", "environments": []}])
    cfg = write_config(tmp_path / "deploywave.json", bad)
    result = CliRunner().invoke(cli, ["synth", "--config", str(cfg)])

    assert result.exit_code == 1
    assert "EmptyWave" in result.output


def test_missing_config(tmp_path: Path) -> None:
    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path):
        result = runner.invoke(cli, ["plan"])
    assert result.exit_code == 1
    assert "No pipeline config found" in result.output


def test_debug_flag_shows_loaded_config(tmp_path: Path) -> None:
    cfg = write_config(tmp_path / "deploywave.json", CONFIG)

    result = CliRunner().invoke(cli, ["--debug", "plan", "--config", str(cfg)])
    assert result.exit_code == 0, result.output
    assert f"[DEBUG] Loaded {cfg.resolve()}" in result.output

    result = CliRunner().invoke(cli, ["plan", "--config", str(cfg)])
    assert "[DEBUG]" not in result.output


def test_bad_retry_value_is_a_config_error(tmp_path: Path) -> None:
    cfg = write_config(tmp_path / "deploywave.json", dict(CONFIG, relayRetry={"retryAttempts": "two"}))
    result = CliRunner().invoke(cli, ["synth", "--config", str(cfg)])

    assert result.exit_code == 1
    assert "Invalid pipeline configuration" in result.output
    assert "InvalidRetryPolicy" in result.output
