from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    RemovalPolicy,
    aws_events as events,
    aws_lambda as _lambda,
    aws_logs as logs,
    aws_stepfunctions as sfn,
    aws_stepfunctions_tasks as tasks,
)
from constructs import Construct

from stacks.lambda_base import GRANTER_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_assume_handler_role


def build_grant_workflow(
    scope: Construct,
    fn: _lambda.IFunction,
    *,
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
) -> tuple[sfn.StateMachine, logs.LogGroup]:
    """Wait for the grant window, activate, wait for its end, deactivate.

    Input shape: ``{"grant": {"start": <ISO8601>, "end": <ISO8601>, ...}}``.
    """
    wait_for_start = sfn.Wait(
        scope,
        "WaitForGrantStart",
        time=sfn.WaitTime.timestamp_path("$.grant.start"),
    )
    activate = tasks.LambdaInvoke(
        scope,
        "ActivateAccess",
        lambda_function=fn,
        payload=sfn.TaskInput.from_object(
            {"action": "ACTIVATE", "grant": sfn.JsonPath.object_at("$.grant")}
        ),
        result_path="$.activate",
    )
    wait_for_end = sfn.Wait(
        scope,
        "WaitForGrantEnd",
        time=sfn.WaitTime.timestamp_path("$.grant.end"),
    )
    deactivate = tasks.LambdaInvoke(
        scope,
        "DeactivateAccess",
        lambda_function=fn,
        payload=sfn.TaskInput.from_object(
            {"action": "DEACTIVATE", "grant": sfn.JsonPath.object_at("$.grant")}
        ),
        result_path="$.deactivate",
    )

    log_group = logs.LogGroup(
        scope,
        "StateMachineLogGroup",
        retention=logs.RetentionDays.ONE_WEEK,
        removal_policy=removal_policy,
    )
    state_machine = sfn.StateMachine(
        scope,
        "StateMachine",
        definition_body=sfn.DefinitionBody.from_chainable(
            sfn.Chain.start(wait_for_start).next(activate).next(wait_for_end).next(deactivate)
        ),
        logs=sfn.LogOptions(destination=log_group, level=sfn.LogLevel.ERROR),
    )
    return state_machine, log_group


class Granter(Construct):
    """Time-boxed access workflow used by the access handler."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bundle_dir: str | Path,
        event_bus: events.IEventBus,
        event_bus_source_name: str,
        provider_config: str,
        remote_config_url: str = "",
        remote_config_headers: str = "",
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._lambda = BaseLambdaFunction(
            self,
            "StepHandlerFunction",
            unit=GRANTER_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_EVENT_BUS_ARN": event_bus.event_bus_arn,
                "COMMONFATE_EVENT_BUS_SOURCE": event_bus_source_name,
                "COMMONFATE_PROVIDER_CONFIG": provider_config,
                "COMMONFATE_ACCESS_REMOTE_CONFIG_URL": remote_config_url,
                "COMMONFATE_REMOTE_CONFIG_HEADERS": remote_config_headers,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
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
