from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    RemovalPolicy,
    aws_apigateway as apigw,
    aws_events as events,
)
from constructs import Construct

from stacks.granter import Granter
from stacks.lambda_base import ACCESS_HANDLER_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_assume_handler_role
from stacks.routing import RoutingFacade


class AccessHandler(Construct):
    """Provider-facing API that starts and stops grants; callable only with IAM credentials."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_name: str,
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

        self._granter = Granter(
            self,
            "Granter",
            bundle_dir=bundle_dir,
            event_bus=event_bus,
            event_bus_source_name=event_bus_source_name,
            provider_config=provider_config,
            remote_config_url=remote_config_url,
            remote_config_headers=remote_config_headers,
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        state_machine = self._granter.get_state_machine()

        self._lambda = BaseLambdaFunction(
            self,
            "RestAPIHandlerFunction",
            unit=ACCESS_HANDLER_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_GRANTER_STATE_MACHINE_ARN": state_machine.state_machine_arn,
                "COMMONFATE_EVENT_BUS_ARN": event_bus.event_bus_arn,
                "COMMONFATE_EVENT_BUS_SOURCE": event_bus_source_name,
                "COMMONFATE_PROVIDER_CONFIG": provider_config,
                "COMMONFATE_ACCESS_REMOTE_CONFIG_URL": remote_config_url,
                "COMMONFATE_REMOTE_CONFIG_HEADERS": remote_config_headers,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        state_machine.grant_start_execution(self._lambda)
        state_machine.grant_execution(
            self._lambda,
            "states:DescribeExecution",
            "states:StopExecution",
            "states:GetExecutionHistory",
        )
        event_bus.grant_put_events_to(self._lambda)
        grant_assume_handler_role(self._lambda)

        self._routing = RoutingFacade(
            self,
            "Routing",
            rest_api_name=f"{app_name}-access-handler",
            cloud_watch_role=False,
            removal_policy=removal_policy,
        )
        self._routing.add_proxy_route(
            "",
            self._lambda,
            owner="access-handler",
            authorization_type=apigw.AuthorizationType.IAM,
        )

    def get_api_url(self) -> str:
        return self._routing.url

    def get_api_gateway(self) -> apigw.RestApi:
        return self._routing.rest_api

    def get_log_group_name(self) -> str:
        return self._lambda.log_group_name

    def get_access_handler_execution_role_arn(self) -> str:
        return self._lambda.execution_role_arn

    def get_granter(self) -> Granter:
        return self._granter
