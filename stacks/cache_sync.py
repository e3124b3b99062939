from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    RemovalPolicy,
    aws_dynamodb as ddb,
    aws_events as events,
    aws_events_targets as events_targets,
)
from constructs import Construct

from stacks.access_handler import AccessHandler
from stacks.conditions import ResourceState, switch_state
from stacks.lambda_base import CACHE_SYNC_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_assume_handler_role, grant_invoke_rest_api


class CacheSync(Construct):
    """Refreshes the cached provider resources every five minutes when the cron switch is on."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bundle_dir: str | Path,
        dynamo_table: ddb.ITable,
        access_handler: AccessHandler,
        should_run_as_cron: bool,
        identity_group_filter: str = "",
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._lambda = BaseLambdaFunction(
            self,
            "HandlerFunction",
            unit=CACHE_SYNC_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_ACCESS_HANDLER_URL": access_handler.get_api_url(),
                "COMMONFATE_TABLE_NAME": dynamo_table.table_name,
                "COMMONFATE_IDENTITY_GROUP_FILTER": identity_group_filter,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        dynamo_table.grant_read_write_data(self._lambda)

        # The rule always exists; the switch only toggles it so it can be re-enabled in place.
        self.schedule_state = switch_state(should_run_as_cron)
        self._rule = events.Rule(
            self,
            "EventBridgeCronRule",
            schedule=events.Schedule.cron(minute="0/5"),
            enabled=self.schedule_state is ResourceState.ENABLED,
            targets=[events_targets.LambdaFunction(self._lambda)],
        )

        grant_invoke_rest_api(self._lambda, access_handler.get_api_gateway())
        grant_assume_handler_role(self._lambda)

    def get_log_group_name(self) -> str:
        return self._lambda.log_group_name

    def get_function_name(self) -> str:
        return self._lambda.function_name
