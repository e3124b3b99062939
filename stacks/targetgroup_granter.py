from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    RemovalPolicy,
    aws_dynamodb as ddb,
    aws_events as events,
    aws_stepfunctions as sfn,
)
from constructs import Construct

from stacks.granter import build_grant_workflow
from stacks.lambda_base import TARGETGROUP_GRANTER_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_assume_handler_role


class TargetGroupGranter(Construct):
    """Second-generation granter: grants routed to target groups instead of providers."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bundle_dir: str | Path,
        event_bus: events.IEventBus,
        event_bus_source_name: str,
        dynamo_table: ddb.ITable,
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._lambda = BaseLambdaFunction(
            self,
            "StepHandlerFunction",
            unit=TARGETGROUP_GRANTER_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_TABLE_NAME": dynamo_table.table_name,
                "COMMONFATE_EVENT_BUS_ARN": event_bus.event_bus_arn,
                "COMMONFATE_EVENT_BUS_SOURCE": event_bus_source_name,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        dynamo_table.grant_read_write_data(self._lambda)
        event_bus.grant_put_events_to(self._lambda)
        grant_assume_handler_role(self._lambda)

        self._state_machine, _ = build_grant_workflow(
            self, self._lambda, removal_policy=removal_policy
        )

    def get_state_machine(self) -> sfn.StateMachine:
        return self._state_machine

    def get_state_machine_arn(self) -> str:
        return self._state_machine.state_machine_arn

    def get_log_group_name(self) -> str:
        return self._lambda.log_group_name
