from aws_cdk import (
    RemovalPolicy,
    aws_events as events,
    aws_events_targets as events_targets,
    aws_logs as logs,
)
from constructs import Construct

EVENT_BUS_SOURCE_NAME = "commonfate.io/granted"


class EventBus(Construct):
    """Shared bus plus the source tag every publisher stamps on its events."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_name: str,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._source_name = EVENT_BUS_SOURCE_NAME
        self._event_bus = events.EventBus(self, "EventBus", event_bus_name=f"{app_name}-bus")

        # Archive everything published under the shared source for debugging.
        self._log_group = logs.LogGroup(
            self,
            "EventBusLog",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=removal_policy,
        )
        events.Rule(
            self,
            "EventBusLogRule",
            event_bus=self._event_bus,
            event_pattern=events.EventPattern(source=[self._source_name]),
            targets=[events_targets.CloudWatchLogGroup(self._log_group)],
        )

    def get_event_bus(self) -> events.EventBus:
        return self._event_bus

    def get_event_bus_source_name(self) -> str:
        return self._source_name

    def get_log_group_name(self) -> str:
        return self._log_group.log_group_name
