from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    Duration,
    RemovalPolicy,
    aws_dynamodb as ddb,
    aws_events as events,
    aws_events_targets as events_targets,
)
from constructs import Construct

from stacks.conditions import ResourceState, switch_state
from stacks.lambda_base import HEALTHCHECK_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_assume_handler_role


class HealthChecker(Construct):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bundle_dir: str | Path,
        dynamo_table: ddb.ITable,
        provider_config: str,
        should_run_as_cron: bool,
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._lambda = BaseLambdaFunction(
            self,
            "HealthCheckerFunction",
            unit=HEALTHCHECK_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_TABLE_NAME": dynamo_table.table_name,
                "COMMONFATE_PROVIDER_CONFIG": provider_config,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        dynamo_table.grant_read_write_data(self._lambda)
        grant_assume_handler_role(self._lambda)

        self.schedule_state = switch_state(should_run_as_cron)
        self._rule = events.Rule(
            self,
            "EventBridgeCronRule",
            schedule=events.Schedule.rate(Duration.minutes(5)),
            enabled=self.schedule_state is ResourceState.ENABLED,
            targets=[events_targets.LambdaFunction(self._lambda)],
        )

    def get_log_group_name(self) -> str:
        return self._lambda.log_group_name

    def get_function_name(self) -> str:
        return self._lambda.function_name
