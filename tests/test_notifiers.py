import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stacks.event_bus import EVENT_BUS_SOURCE_NAME


def _find(template: dict, resource_type: str, logical_id_prefix: str) -> tuple[str, dict]:
    for logical_id, resource in template["Resources"].items():
        if resource.get("Type") == resource_type and logical_id.startswith(logical_id_prefix):
            return logical_id, resource
    raise AssertionError(f"{resource_type} starting with {logical_id_prefix} not found")


def _policy_statements_for_role(template: dict, role_id: str) -> list[dict]:
    stmts: list[dict] = []
    for resource in template["Resources"].values():
        if resource.get("Type") != "AWS::IAM::Policy":
            continue
        props = resource["Properties"]
        if {"Ref": role_id} in props.get("Roles", []):
            stmts.extend(props["PolicyDocument"]["Statement"])
    return stmts


def test_slack_rule_matches_shared_source_and_retries_twice(default_template):
    fn_id, _ = _find(default_template, "AWS::Lambda::Function", "APINotifiersSlackNotifierFunction")
    _, rule = _find(default_template, "AWS::Events::Rule", "APINotifiersSlackNotifierEventBridgeRule")
    props = rule["Properties"]

    assert props["EventPattern"] == {"source": [EVENT_BUS_SOURCE_NAME]}
    assert "Ref" in props["EventBusName"]
    (target,) = props["Targets"]
    assert target["Arn"] == {"Fn::GetAtt": [fn_id, "Arn"]}
    assert target["RetryPolicy"]["MaximumRetryAttempts"] == 2


def test_slack_notifier_grants(default_template):
    _, fn = _find(default_template, "AWS::Lambda::Function", "APINotifiersSlackNotifierFunction")
    role_id = fn["Properties"]["Role"]["Fn::GetAtt"][0]
    stmts = _policy_statements_for_role(default_template, role_id)

    ssm = [s for s in stmts if s["Action"] == "ssm:GetParameter"]
    assert len(ssm) == 1
    assert "parameter/granted/secrets/notifications/*" in json.dumps(ssm[0]["Resource"])

    cognito = [s for s in stmts if s["Action"] == "cognito-idp:AdminGetUser"]
    assert len(cognito) == 1

    env = fn["Properties"]["Environment"]["Variables"]
    assert env["COMMONFATE_NOTIFICATIONS_SETTINGS"] == "{}"
    assert fn["Properties"]["Timeout"] == 20


def test_failed_invocations_alarm_watches_slack_rule(default_template):
    rule_id, _ = _find(default_template, "AWS::Events::Rule", "APINotifiersSlackNotifierEventBridgeRule")
    _, alarm = _find(
        default_template, "AWS::CloudWatch::Alarm", "APINotifiersSlackNotifierFailedInvocationsAlarm"
    )
    props = alarm["Properties"]

    assert props["Namespace"] == "AWS/Events"
    assert props["MetricName"] == "FailedInvocations"
    dims = {d["Name"]: d["Value"] for d in props["Dimensions"]}
    assert set(dims) == {"EventBusName", "RuleName"}
    assert dims["RuleName"] == {"Ref": rule_id}


def test_event_handler_uses_the_same_exact_source_filter(default_template):
    fn_id, fn = _find(default_template, "AWS::Lambda::Function", "APIEventHandlerEventHandlerFunction")
    _, rule = _find(default_template, "AWS::Events::Rule", "APIEventHandlerEventBusRule")

    assert rule["Properties"]["EventPattern"] == {"source": [EVENT_BUS_SOURCE_NAME]}
    assert rule["Properties"]["Targets"][0]["Arn"] == {"Fn::GetAtt": [fn_id, "Arn"]}
    assert fn["Properties"]["Environment"]["Variables"]["COMMONFATE_EVENT_BUS_SOURCE"] == EVENT_BUS_SOURCE_NAME


def test_event_bus_archives_shared_source_to_logs(default_template):
    _, rule = _find(default_template, "AWS::Events::Rule", "EventBusEventBusLogRule")

    assert rule["Properties"]["EventPattern"] == {"source": [EVENT_BUS_SOURCE_NAME]}
    assert "EventBusEventBusLog" in json.dumps(rule["Properties"]["Targets"][0]["Arn"])
