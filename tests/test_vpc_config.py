import sys
from pathlib import Path

import pytest
from aws_cdk import App, CfnParameter, Stack, assertions

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stacks.conditions import ResourceState
from stacks.lambda_base import (
    API_UNIT,
    BaseLambdaFunction,
    MissingArtifactError,
    VpcConfig,
)


def _functions(template: dict) -> dict[str, dict]:
    return {
        logical_id: resource["Properties"]
        for logical_id, resource in template["Resources"].items()
        if resource.get("Type") == "AWS::Lambda::Function"
        and resource["Properties"].get("Runtime") == "provided.al2023"
    }


def test_literal_csv_attaches_every_unit(make_config, synth):
    template = synth(
        make_config(subnet_ids="subnet-a, subnet-b", security_groups="sg-1"),
        "VpcAttachedStack",
    )

    functions = _functions(template)
    assert len(functions) == 11
    for props in functions.values():
        assert props["VpcConfig"] == {
            "SubnetIds": ["subnet-a", "subnet-b"],
            "SecurityGroupIds": ["sg-1"],
        }
    assert "AttachLambdaToVpcCondition" not in template.get("Conditions", {})


def test_no_vpc_by_default(default_template):
    for props in _functions(default_template).values():
        assert "VpcConfig" not in props


def test_partial_vpc_config_degrades_with_warning():
    stack = Stack(App(), "PartialVpcStack")

    cfg = VpcConfig.from_csv(stack, subnet_ids="subnet-a", security_groups="")

    assert cfg.state is ResourceState.ABSENT
    assertions.Annotations.from_stack(stack).has_warning(
        "*", assertions.Match.string_like_regexp("Lambda VPC attachment skipped")
    )


def test_token_inputs_are_guarded(bundle_dir):
    stack = Stack(App(), "TokenVpcStack")
    subnets = CfnParameter(stack, "SubnetIds", type="String", default="").value_as_string
    groups = CfnParameter(stack, "SecurityGroups", type="String", default="").value_as_string

    cfg = VpcConfig.from_csv(stack, subnet_ids=subnets, security_groups=groups)
    BaseLambdaFunction(
        stack,
        "Handler",
        unit=API_UNIT,
        bundle_dir=bundle_dir,
        environment={},
        vpc_config=cfg,
    )

    template = assertions.Template.from_stack(stack).to_json()
    assert cfg.state is ResourceState.ENABLED
    assert "AttachLambdaToVpcCondition" in template["Conditions"]
    vpc = next(iter(_functions(template).values()))["VpcConfig"]
    assert "Fn::If" in vpc["SubnetIds"]
    assert vpc["SubnetIds"]["Fn::If"][0] == "AttachLambdaToVpcCondition"


def test_missing_bundle_names_the_unit(tmp_path):
    stack = Stack(App(), "MissingBundleStack")

    with pytest.raises(MissingArtifactError, match="'commonfate'"):
        BaseLambdaFunction(stack, "Handler", unit=API_UNIT, bundle_dir=tmp_path, environment={})


def test_unit_log_group_is_explicit(bundle_dir):
    stack = Stack(App(), "LogGroupStack")
    fn = BaseLambdaFunction(stack, "Handler", unit=API_UNIT, bundle_dir=bundle_dir, environment={})

    template = assertions.Template.from_stack(stack).to_json()
    log_groups = [
        r for r in template["Resources"].values() if r.get("Type") == "AWS::Logs::LogGroup"
    ]
    assert len(log_groups) == 1
    assert log_groups[0]["Properties"]["RetentionInDays"] == 7
    assert fn.unit is API_UNIT
