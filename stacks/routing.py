from __future__ import annotations

from dataclasses import dataclass

from aws_cdk import (
    RemovalPolicy,
    aws_apigateway as apigw,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct

ALLOWED_HEADERS = [
    "Content-Type",
    "X-Amz-Date",
    "X-Amz-Security-Token",
    "Authorization",
    "X-Api-Key",
    "X-Requested-With",
    "Accept",
    "Access-Control-Allow-Methods",
    "Access-Control-Allow-Origin",
    "Access-Control-Allow-Headers",
]
ALLOWED_METHODS = "OPTIONS,GET,PUT,POST,DELETE"

CORS_RESPONSE_PARAMETERS = {
    "method.response.header.Access-Control-Allow-Headers": f"'{','.join(ALLOWED_HEADERS)}'",
    "method.response.header.Access-Control-Allow-Origin": "'*'",
    "method.response.header.Access-Control-Allow-Credentials": "'false'",
    "method.response.header.Access-Control-Allow-Methods": f"'{ALLOWED_METHODS}'",
}


class RouteCollisionError(ValueError):
    pass


@dataclass(frozen=True)
class Route:
    path: str
    method: str
    owner: str
    authenticated: bool


def _normalize(path: str) -> str:
    parts = [p for p in path.strip().split("/") if p]
    return "/" + "/".join(parts)


class RoutingFacade(Construct):
    """One REST API; every route is registered through here so duplicates fail loudly."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        rest_api_name: str,
        stage_name: str = "prod",
        cloud_watch_role: bool = True,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._routes: dict[tuple[str, str], Route] = {}

        access_log_group = logs.LogGroup(
            self,
            "AccessLogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=removal_policy,
        )
        self.rest_api = apigw.RestApi(
            self,
            "RestAPI",
            rest_api_name=rest_api_name,
            deploy_options=apigw.StageOptions(
                stage_name=stage_name,
                access_log_destination=apigw.LogGroupLogDestination(access_log_group),
                # Standard fields only; do not log headers (e.g., Authorization).
                access_log_format=apigw.AccessLogFormat.json_with_standard_fields(
                    caller=True,
                    http_method=True,
                    ip=True,
                    protocol=True,
                    request_time=True,
                    resource_path=True,
                    response_length=True,
                    status=True,
                    user=True,
                ),
            ),
            # The API Gateway logging role is account-wide; only one facade per stack owns it.
            cloud_watch_role=cloud_watch_role,
        )

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes.values())

    @property
    def url(self) -> str:
        return self.rest_api.url

    @property
    def stage_arn(self) -> str:
        return self.rest_api.deployment_stage.stage_arn

    def url_for(self, path: str) -> str:
        # RestApi.url already ends with "/".
        return self.rest_api.url + _normalize(path)[1:]

    def _register(self, path: str, method: str, *, owner: str, authenticated: bool) -> None:
        key = (path, method)
        existing = self._routes.get(key)
        if existing is not None:
            raise RouteCollisionError(
                f"route {method} {path} is already registered by {existing.owner!r}; "
                f"{owner!r} cannot register it again"
            )
        self._routes[key] = Route(path=path, method=method, owner=owner, authenticated=authenticated)

    def _resource_for(self, path: str) -> apigw.IResource:
        resource: apigw.IResource = self.rest_api.root
        for part in _normalize(path).split("/")[1:]:
            resource = resource.get_resource(part) or resource.add_resource(part)
        return resource

    def add_proxy_route(
        self,
        prefix: str,
        handler: _lambda.IFunction,
        *,
        owner: str,
        authorizer: apigw.IAuthorizer | None = None,
        authorization_type: apigw.AuthorizationType = apigw.AuthorizationType.NONE,
    ) -> apigw.IResource:
        """Forward every method and sub-path under ``prefix`` to ``handler``.

        A Cognito ``authorizer`` wins over ``authorization_type``; use
        ``AuthorizationType.IAM`` for service-to-service APIs.
        """
        path = _normalize(f"{prefix}/{{proxy+}}")
        authenticated = authorizer is not None or authorization_type != apigw.AuthorizationType.NONE
        self._register(path, "ANY", owner=owner, authenticated=authenticated)
        resource = self._resource_for(path)
        integration = apigw.LambdaIntegration(handler, allow_test_invoke=False)
        if authorizer is None:
            resource.add_method(
                "ANY",
                integration,
                authorization_type=authorization_type,
            )
        else:
            resource.add_method(
                "ANY",
                integration,
                authorization_type=apigw.AuthorizationType.COGNITO,
                authorizer=authorizer,
            )
        return resource

    def add_cors_preflight(self, path: str, *, owner: str) -> apigw.IResource:
        """Answer OPTIONS with a fixed CORS header set; no function is invoked."""
        path = _normalize(path)
        self._register(path, "OPTIONS", owner=owner, authenticated=False)
        resource = self._resource_for(path)
        mock = apigw.MockIntegration(
            integration_responses=[
                apigw.IntegrationResponse(
                    status_code="200",
                    response_parameters=CORS_RESPONSE_PARAMETERS,
                )
            ],
            passthrough_behavior=apigw.PassthroughBehavior.NEVER,
            request_templates={"application/json": '{"statusCode": 200}'},
        )
        resource.add_method(
            "OPTIONS",
            mock,
            authorization_type=apigw.AuthorizationType.NONE,
            method_responses=[
                apigw.MethodResponse(
                    status_code="200",
                    response_models={"application/json": apigw.Model.EMPTY_MODEL},
                    response_parameters={name: True for name in CORS_RESPONSE_PARAMETERS},
                )
            ],
        )
        return resource
