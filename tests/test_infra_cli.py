from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import infra_cli.main as cli
from stacks.outputs import STACK_OUTPUT_KEYS

runner = CliRunner()


class _FakeCloudFormation:
    def __init__(self, outputs: dict[str, str] | None, *, error: Exception | None = None) -> None:
        self.outputs = outputs
        self.error = error
        self.calls: list[str] = []

    def describe_stacks(self, StackName: str) -> dict:
        self.calls.append(StackName)
        if self.error is not None:
            raise self.error
        if self.outputs is None:
            return {"Stacks": []}
        return {
            "Stacks": [
                {
                    "StackName": StackName,
                    "Outputs": [
                        {"OutputKey": k, "OutputValue": v} for k, v in self.outputs.items()
                    ],
                }
            ]
        }


class _FakeSession:
    def __init__(self, cf: _FakeCloudFormation) -> None:
        self.cf = cf

    def client(self, name: str) -> _FakeCloudFormation:
        assert name == "cloudformation"
        return self.cf


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    monkeypatch.setattr(cli, "_bootstrap_env", lambda: None)
    for name in ("STAGE", "CDK_STACK_NAME", "AWS_PROFILE", "AWS_REGION", "DATA_RETENTION_MODE"):
        monkeypatch.delenv(name, raising=False)


def _use_outputs(monkeypatch, outputs, *, error=None) -> tuple[_FakeCloudFormation, list[dict]]:
    cf = _FakeCloudFormation(outputs, error=error)
    sessions: list[dict] = []

    def _session(*, profile: str, region: str) -> _FakeSession:
        sessions.append({"profile": profile, "region": region})
        return _FakeSession(cf)

    monkeypatch.setattr(cli, "_account_session", _session)
    return cf, sessions


def test_config_prints_resolved_configuration(monkeypatch):
    monkeypatch.setenv("STAGE", "qa")
    monkeypatch.setenv("IDENTITY_GROUP_FILTER", "engineering")

    result = runner.invoke(cli.app, ["config"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["stage"] == "qa"
    assert payload["app_name"] == "common-fate-qa"
    assert payload["stack_name"] == "CommonFate-qa"
    assert payload["identity_group_filter"] == "engineering"


def test_config_error_is_usage_error(monkeypatch, capsys):
    monkeypatch.setenv("DATA_RETENTION_MODE", "forever")

    code = cli.main(["config"])

    assert code == 2
    assert "DATA_RETENTION_MODE" in capsys.readouterr().err


def test_outputs_prints_all_as_json(monkeypatch):
    cf, sessions = _use_outputs(monkeypatch, {"APIURL": "https://api.example.com/prod/"})

    result = runner.invoke(
        cli.app,
        ["--stack", "CommonFate-prod", "--profile", "ops", "--region", "eu-west-1", "--plain-json", "outputs"],
    )

    assert result.exit_code == 0, result.output
    assert result.stdout == '{"APIURL":"https://api.example.com/prod/"}\n'
    assert cf.calls == ["CommonFate-prod"]
    assert sessions == [{"profile": "ops", "region": "eu-west-1"}]


def test_outputs_single_key_prints_raw_value(monkeypatch):
    _use_outputs(monkeypatch, {"DynamoDBTable": "common-fate-dev"})

    result = runner.invoke(cli.app, ["outputs", "DynamoDBTable"])

    assert result.exit_code == 0, result.output
    assert result.stdout == "common-fate-dev\n"


def test_outputs_missing_key_is_operational_error(monkeypatch, capsys):
    _use_outputs(monkeypatch, {"DynamoDBTable": "common-fate-dev"})

    assert cli.main(["outputs", "APIURL"]) == 1
    assert "missing CloudFormation output 'APIURL'" in capsys.readouterr().err


def test_describe_failure_is_operational_error(monkeypatch, capsys):
    _use_outputs(monkeypatch, None, error=RuntimeError("AccessDenied"))

    assert cli.main(["outputs"]) == 1
    assert "describe-stacks failed" in capsys.readouterr().err


def test_verify_outputs_passes_for_complete_stack(monkeypatch):
    _use_outputs(monkeypatch, {key: "v" for key in STACK_OUTPUT_KEYS})

    result = runner.invoke(cli.app, ["--plain-json", "verify-outputs"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {
        "ok": True,
        "stack": "CommonFate-dev",
        "outputs": len(STACK_OUTPUT_KEYS),
    }


def test_verify_outputs_lists_missing_keys(monkeypatch, capsys):
    outputs = {key: "v" for key in STACK_OUTPUT_KEYS if key not in {"GovernanceURL", "Region"}}
    _use_outputs(monkeypatch, outputs)

    assert cli.main(["verify-outputs"]) == 1
    err = capsys.readouterr().err
    assert "GovernanceURL" in err
    assert "Region" in err


def test_unknown_stack_is_operational_error(monkeypatch, capsys):
    _use_outputs(monkeypatch, None)

    assert cli.main(["--stack", "Nope", "verify-outputs"]) == 1
    assert "stack not found: Nope" in capsys.readouterr().err


def test_version_flag():
    result = runner.invoke(cli.app, ["--version"])

    assert result.exit_code == 0
    assert result.stdout.strip() == f"cf-infra {cli.__version__}"
