from __future__ import annotations

import enum

from aws_cdk import CfnCondition, CfnResource, Fn, Token
from constructs import Construct, IConstruct


class ResourceState(enum.Enum):
    ABSENT = "absent"
    DISABLED = "disabled"
    ENABLED = "enabled"


def resolve_state(*values: str) -> ResourceState:
    """Decide once, at composition time, whether an optional resource exists.

    Any literal empty input makes the resource absent. Unresolved tokens are
    treated as present; ``guard`` then adds the CloudFormation-side check.
    """
    for value in values:
        if Token.is_unresolved(value):
            continue
        if not (value or "").strip():
            return ResourceState.ABSENT
    return ResourceState.ENABLED


def switch_state(enabled: bool) -> ResourceState:
    return ResourceState.ENABLED if enabled else ResourceState.DISABLED


def guard(scope: Construct, construct_id: str, *values: str) -> CfnCondition | None:
    """Return a ``CfnCondition`` that is true when every token value is non-empty.

    Returns None when all inputs are literal strings: the Python-side state is
    already final and the template needs no condition.
    """
    tokens = [v for v in values if Token.is_unresolved(v)]
    if not tokens:
        return None
    checks = [Fn.condition_not(Fn.condition_equals(v, "")) for v in tokens]
    expression = checks[0] if len(checks) == 1 else Fn.condition_and(*checks)
    return CfnCondition(scope, construct_id, expression=expression)


def apply_guard(target: IConstruct, condition: CfnCondition | None) -> None:
    if condition is None:
        return
    cfn = target if isinstance(target, CfnResource) else target.node.default_child
    if not isinstance(cfn, CfnResource):
        raise TypeError(f"cannot attach a condition to {target.node.path}: no CfnResource")
    cfn.cfn_options.condition = condition
