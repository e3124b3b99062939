import sys
from pathlib import Path

import pytest
from aws_cdk import App, CfnParameter, Stack, assertions, aws_wafv2 as wafv2

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stacks.conditions import ResourceState, apply_guard, guard, resolve_state, switch_state


def test_resolve_state_for_literals():
    assert resolve_state("") is ResourceState.ABSENT
    assert resolve_state("   ") is ResourceState.ABSENT
    assert resolve_state("arn:aws:wafv2:us-east-1:111111111111:regional/webacl/x/y") is ResourceState.ENABLED
    assert resolve_state("subnet-1", "") is ResourceState.ABSENT
    assert resolve_state("subnet-1", "sg-1") is ResourceState.ENABLED


def test_switch_state_never_absent():
    assert switch_state(False) is ResourceState.DISABLED
    assert switch_state(True) is ResourceState.ENABLED


def test_literal_values_need_no_condition():
    stack = Stack(App(), "LiteralGuardStack")

    assert guard(stack, "Cond", "arn:aws:x") is None


def test_token_value_is_guarded_in_template():
    stack = Stack(App(), "TokenGuardStack")
    web_acl_arn = CfnParameter(stack, "WebAclArn", type="String", default="").value_as_string

    assert resolve_state(web_acl_arn) is ResourceState.ENABLED
    condition = guard(stack, "CreateWafCondition", web_acl_arn)
    assert condition is not None

    association = wafv2.CfnWebACLAssociation(
        stack,
        "Association",
        resource_arn="arn:aws:apigateway:us-east-1::/restapis/abc/stages/prod",
        web_acl_arn=web_acl_arn,
    )
    apply_guard(association, condition)

    template = assertions.Template.from_stack(stack).to_json()
    assert template["Resources"]["Association"]["Condition"] == "CreateWafCondition"
    assert template["Conditions"]["CreateWafCondition"] == {
        "Fn::Not": [{"Fn::Equals": [{"Ref": "WebAclArn"}, ""]}]
    }


def test_apply_guard_rejects_constructs_without_cfn_resource():
    stack = Stack(App(), "NoCfnStack")
    web_acl_arn = CfnParameter(stack, "WebAclArn", type="String").value_as_string
    condition = guard(stack, "Cond", web_acl_arn)

    with pytest.raises(TypeError, match="no CfnResource"):
        apply_guard(stack, condition)
