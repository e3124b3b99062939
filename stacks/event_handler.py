from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    RemovalPolicy,
    aws_dynamodb as ddb,
    aws_events as events,
    aws_events_targets as events_targets,
)
from constructs import Construct

from stacks.lambda_base import EVENT_HANDLER_UNIT, BaseLambdaFunction, VpcConfig


class EventHandler(Construct):
    """Applies bus events (grant activated, request approved, ...) to the shared table."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bundle_dir: str | Path,
        dynamo_table: ddb.ITable,
        event_bus: events.IEventBus,
        event_bus_source_name: str,
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._lambda = BaseLambdaFunction(
            self,
            "EventHandlerFunction",
            unit=EVENT_HANDLER_UNIT,
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

        self._rule = events.Rule(
            self,
            "EventBusRule",
            event_bus=event_bus,
            event_pattern=events.EventPattern(source=[event_bus_source_name]),
            targets=[events_targets.LambdaFunction(self._lambda)],
        )

    def get_log_group_name(self) -> str:
        return self._lambda.log_group_name

    def get_function_name(self) -> str:
        return self._lambda.function_name
