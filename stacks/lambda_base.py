from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from aws_cdk import (
    Annotations,
    Duration,
    Fn,
    RemovalPolicy,
    Token,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct

from stacks.conditions import ResourceState, guard, resolve_state


class MissingArtifactError(ValueError):
    pass


@dataclass(frozen=True)
class DeployableUnit:
    """A prebuilt function bundle: ``<bundle_dir>/<name>.zip`` with a fixed entry point."""

    name: str
    handler: str
    timeout_seconds: int = 60
    memory_size: int = 128

    def artifact_path(self, bundle_dir: str | Path) -> Path:
        return Path(bundle_dir) / f"{self.name}.zip"


API_UNIT = DeployableUnit("commonfate", "commonfate", timeout_seconds=60)
WEBHOOK_UNIT = DeployableUnit("webhook", "webhook", timeout_seconds=20)
EVENT_HANDLER_UNIT = DeployableUnit("event-handler", "event-handler", timeout_seconds=20)
SLACK_NOTIFIER_UNIT = DeployableUnit("slack-notifier", "slack-notifier", timeout_seconds=20)
IDP_SYNC_UNIT = DeployableUnit("idp-sync", "idp-sync", timeout_seconds=30)
CACHE_SYNC_UNIT = DeployableUnit("cache-sync", "cache-sync", timeout_seconds=60)
HEALTHCHECK_UNIT = DeployableUnit("healthcheck", "healthcheck", timeout_seconds=60)
ACCESS_HANDLER_UNIT = DeployableUnit("access-handler", "access-handler", timeout_seconds=60)
GRANTER_UNIT = DeployableUnit("granter", "granter", timeout_seconds=300)
GOVERNANCE_UNIT = DeployableUnit("governance", "governance", timeout_seconds=60)
TARGETGROUP_GRANTER_UNIT = DeployableUnit(
    "targetgroup-granter", "targetgroup-granter", timeout_seconds=300, memory_size=1024
)

ALL_UNITS = (
    API_UNIT,
    WEBHOOK_UNIT,
    EVENT_HANDLER_UNIT,
    SLACK_NOTIFIER_UNIT,
    IDP_SYNC_UNIT,
    CACHE_SYNC_UNIT,
    HEALTHCHECK_UNIT,
    ACCESS_HANDLER_UNIT,
    GRANTER_UNIT,
    GOVERNANCE_UNIT,
    TARGETGROUP_GRANTER_UNIT,
)


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class VpcConfig:
    state: ResourceState = ResourceState.ABSENT
    subnet_ids: Any = field(default_factory=list)
    security_group_ids: Any = field(default_factory=list)

    @classmethod
    def from_csv(cls, scope: Construct, *, subnet_ids: str, security_groups: str) -> "VpcConfig":
        state = resolve_state(subnet_ids, security_groups)
        if state is ResourceState.ABSENT:
            if (subnet_ids or "").strip() or (security_groups or "").strip():
                Annotations.of(scope).add_warning_v2(
                    "commonfate:vpc-partial",
                    "Lambda VPC attachment skipped: SUBNET_IDS and SECURITY_GROUPS must both be set.",
                )
            return cls()

        condition = guard(scope, "AttachLambdaToVpcCondition", subnet_ids, security_groups)
        if condition is None:
            return cls(
                state=state,
                subnet_ids=_split_csv(subnet_ids),
                security_group_ids=_split_csv(security_groups),
            )

        def _guarded(raw: str) -> Any:
            values = Fn.split(",", raw) if Token.is_unresolved(raw) else _split_csv(raw)
            return Fn.condition_if(condition.logical_id, values, [])

        return cls(
            state=state,
            subnet_ids=_guarded(subnet_ids),
            security_group_ids=_guarded(security_groups),
        )


class BaseLambdaFunction(_lambda.Function):
    """Lambda function backed by a prebuilt bundle, with its own log group and optional VPC attachment."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        unit: DeployableUnit,
        bundle_dir: str | Path,
        environment: Mapping[str, str],
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        artifact = unit.artifact_path(bundle_dir)
        if not artifact.is_file():
            raise MissingArtifactError(
                f"missing function bundle for {unit.name!r}: {artifact} (build the bundles or set BUNDLE_DIR)"
            )

        log_group = logs.LogGroup(
            scope,
            f"{construct_id}LogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=removal_policy,
        )

        super().__init__(
            scope,
            construct_id,
            code=_lambda.Code.from_asset(str(artifact)),
            handler=unit.handler,
            runtime=_lambda.Runtime.PROVIDED_AL2023,
            timeout=Duration.seconds(unit.timeout_seconds),
            memory_size=unit.memory_size,
            environment=dict(environment),
            log_group=log_group,
        )
        self.unit = unit
        self._unit_log_group = log_group

        if vpc_config is not None and vpc_config.state is not ResourceState.ABSENT:
            cfn_function = self.node.default_child
            cfn_function.add_property_override("VpcConfig.SubnetIds", vpc_config.subnet_ids)
            cfn_function.add_property_override(
                "VpcConfig.SecurityGroupIds", vpc_config.security_group_ids
            )
            self.role.add_managed_policy(
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaVPCAccessExecutionRole"
                )
            )

    @property
    def log_group_name(self) -> str:
        return self._unit_log_group.log_group_name

    @property
    def execution_role_arn(self) -> str:
        return self.role.role_arn if self.role else ""
