from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any

import boto3


class InfraOpsError(Exception):
    pass


class UsageError(InfraOpsError):
    pass


class OpError(InfraOpsError):
    pass


@dataclass(frozen=True)
class GlobalOpts:
    stack: str
    profile: str
    region: str
    pretty: bool


def _print_json(obj: Any, *, pretty: bool) -> None:
    if pretty:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")
    else:
        sys.stdout.write(json.dumps(obj, separators=(",", ":"), sort_keys=True) + "\n")


def _account_session(*, profile: str, region: str) -> Any:
    # Empty values fall through to the default boto3 credential chain.
    return boto3.session.Session(
        profile_name=profile or None,
        region_name=region or None,
    )


def _cf_outputs(session: Any, *, stack: str) -> dict[str, str]:
    cf = session.client("cloudformation")
    try:
        resp = cf.describe_stacks(StackName=stack)
    except Exception as e:
        raise OpError(f"cloudformation describe-stacks failed for stack {stack!r}: {e}") from e
    stacks = resp.get("Stacks") or []
    if not stacks:
        raise OpError(f"stack not found: {stack}")
    outputs = stacks[0].get("Outputs") or []
    if not isinstance(outputs, list):
        return {}
    return {
        str(o.get("OutputKey", "")).strip(): str(o.get("OutputValue", "")).strip()
        for o in outputs
        if isinstance(o, dict) and o.get("OutputKey")
    }
