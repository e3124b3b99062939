from __future__ import annotations

from aws_cdk import (
    Duration,
    aws_apigateway as apigw,
    aws_cloudwatch as cloudwatch,
    aws_dynamodb as ddb,
    aws_events as events,
    aws_iam as iam,
    aws_kms as kms,
    aws_wafv2 as wafv2,
)
from constructs import Construct

from stacks.access_handler import AccessHandler
from stacks.cache_sync import CacheSync
from stacks.conditions import ResourceState, apply_guard, guard, resolve_state
from stacks.config import DeploymentConfig
from stacks.event_handler import EventHandler
from stacks.governance import Governance
from stacks.health_checker import HealthChecker
from stacks.idp_sync import IdpSync
from stacks.lambda_base import API_UNIT, WEBHOOK_UNIT, BaseLambdaFunction, VpcConfig
from stacks.notifiers import Notifiers
from stacks.permissions import (
    COGNITO_ADMIN_ACTIONS,
    grant_assume_handler_role,
    grant_assume_identity_sync_role,
    grant_invoke_rest_api,
    grant_ssm_parameters,
)
from stacks.routing import RoutingFacade
from stacks.targetgroup_granter import TargetGroupGranter
from stacks.user_pool import WebUserPool

API_PREFIX = "api/v1"
WEBHOOK_PREFIX = "webhook/v1"


class MissingCollaboratorError(ValueError):
    pass


class AppBackend(Construct):
    """The public REST API plus every unit that hangs off the shared table and bus.

    Collaborators are created by the caller and passed in; nothing here looks
    up shared resources on its own.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_name: str,
        user_pool: WebUserPool,
        frontend_url: str,
        access_handler: AccessHandler,
        governance: Governance,
        event_bus: events.IEventBus,
        event_bus_source_name: str,
        dynamo_table: ddb.Table,
        kms_key: kms.IKey,
        target_group_granter: TargetGroupGranter,
        vpc_config: VpcConfig,
        config: DeploymentConfig,
    ) -> None:
        required = {
            "app_name": app_name,
            "user_pool": user_pool,
            "frontend_url": frontend_url,
            "access_handler": access_handler,
            "governance": governance,
            "event_bus": event_bus,
            "event_bus_source_name": event_bus_source_name,
            "dynamo_table": dynamo_table,
            "kms_key": kms_key,
            "target_group_granter": target_group_granter,
            "vpc_config": vpc_config,
            "config": config,
        }
        missing = [name for name, value in required.items() if value is None]
        if missing:
            raise MissingCollaboratorError(
                f"AppBackend {construct_id!r} is missing required collaborator(s): {', '.join(missing)}"
            )
        super().__init__(scope, construct_id)

        self._dynamo_table = dynamo_table
        self._kms_key = kms_key
        bundle_dir = config.bundle_dir
        removal_policy = config.removal_policy

        self.routing = RoutingFacade(
            self,
            "Routing",
            rest_api_name=app_name,
            removal_policy=removal_policy,
        )

        # Third-party callbacks (e.g. Slack interactivity); no Cognito token available.
        self._webhook_lambda = BaseLambdaFunction(
            self,
            "WebhookHandlerFunction",
            unit=WEBHOOK_UNIT,
            bundle_dir=bundle_dir,
            environment={"COMMONFATE_TABLE_NAME": dynamo_table.table_name},
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        dynamo_table.grant_read_write_data(self._webhook_lambda)
        self.routing.add_proxy_route(WEBHOOK_PREFIX, self._webhook_lambda, owner="webhook")

        self._lambda = BaseLambdaFunction(
            self,
            "RestAPIHandlerFunction",
            unit=API_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_TABLE_NAME": dynamo_table.table_name,
                "COMMONFATE_FRONTEND_URL": frontend_url,
                "COMMONFATE_COGNITO_USER_POOL_ID": user_pool.get_user_pool_id(),
                "COMMONFATE_IDENTITY_PROVIDER": user_pool.get_idp_type(),
                "COMMONFATE_ADMIN_GROUP": config.admin_group_id,
                "COMMONFATE_MOCK_ACCESS_HANDLER": "false",
                "COMMONFATE_ACCESS_HANDLER_URL": access_handler.get_api_url(),
                "COMMONFATE_PROVIDER_CONFIG": config.provider_config,
                "COMMONFATE_EVENT_BUS_ARN": event_bus.event_bus_arn,
                "COMMONFATE_EVENT_BUS_SOURCE": event_bus_source_name,
                "COMMONFATE_IDENTITY_SETTINGS": config.identity_provider_sync_configuration,
                "COMMONFATE_PAGINATION_KMS_KEY_ARN": kms_key.key_arn,
                "COMMONFATE_ACCESS_HANDLER_EXECUTION_ROLE_ARN": (
                    access_handler.get_access_handler_execution_role_arn()
                ),
                "COMMONFATE_DEPLOYMENT_SUFFIX": config.stage,
                "COMMONFATE_GRANTER_V2_STATE_MACHINE_ARN": (
                    target_group_granter.get_state_machine_arn()
                ),
                "COMMONFATE_ACCESS_REMOTE_CONFIG_URL": config.remote_config_url,
                "COMMONFATE_REMOTE_CONFIG_HEADERS": config.remote_config_headers,
                "CF_ANALYTICS_DISABLED": config.analytics_disabled,
                "CF_ANALYTICS_URL": config.analytics_url,
                "CF_ANALYTICS_LOG_LEVEL": config.analytics_log_level,
                "CF_ANALYTICS_DEPLOYMENT_STAGE": config.deployment_stage,
                "COMMONFATE_IDENTITY_GROUP_FILTER": config.identity_group_filter,
                "COMMONFATE_AUTO_APPROVAL_LAMBDA_ARN": config.auto_approval_lambda_arn,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )

        kms_key.grant_encrypt_decrypt(self._lambda)

        self._grant_auto_approval(config.auto_approval_lambda_arn)

        self._lambda.add_to_role_policy(
            iam.PolicyStatement(
                actions=COGNITO_ADMIN_ACTIONS,
                resources=[user_pool.get_user_pool().user_pool_arn],
            )
        )
        grant_ssm_parameters(
            self._lambda,
            self,
            path="granted/secrets/identity/*",
            actions=["ssm:GetParameter", "ssm:PutParameter"],
        )
        # Guided setup writes provider parameters.
        grant_ssm_parameters(
            self._lambda,
            self,
            path="granted/providers/*",
            actions=["ssm:PutParameter"],
        )

        granter_v2 = target_group_granter.get_state_machine()
        granter_v2.grant_start_execution(self._lambda)
        granter_v2.grant_execution(
            self._lambda,
            "states:DescribeExecution",
            "states:StopExecution",
            "states:GetExecutionHistory",
        )

        grant_assume_identity_sync_role(self._lambda)
        grant_assume_handler_role(self._lambda)
        dynamo_table.grant_read_write_data(self._lambda)
        grant_invoke_rest_api(self._lambda, access_handler.get_api_gateway())
        event_bus.grant_put_events_to(self._lambda)

        authorizer = apigw.CognitoUserPoolsAuthorizer(
            self,
            "Authorizer",
            cognito_user_pools=[user_pool.get_user_pool()],
        )
        self.routing.add_proxy_route(API_PREFIX, self._lambda, owner="api", authorizer=authorizer)
        self.routing.add_cors_preflight(f"{API_PREFIX}/{{proxy+}}", owner="api")

        self._waf_association = self._associate_waf(config.api_gateway_waf_acl_arn)

        cloudwatch.Alarm(
            self,
            "RestAPIHandlerErrorsAlarm",
            metric=self._lambda.metric_errors(period=Duration.minutes(5), statistic="Sum"),
            threshold=1,
            evaluation_periods=1,
            datapoints_to_alarm=1,
            treat_missing_data=cloudwatch.TreatMissingData.NOT_BREACHING,
        )

        self._event_handler = EventHandler(
            self,
            "EventHandler",
            bundle_dir=bundle_dir,
            dynamo_table=dynamo_table,
            event_bus=event_bus,
            event_bus_source_name=event_bus_source_name,
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        self._notifiers = Notifiers(
            self,
            "Notifiers",
            bundle_dir=bundle_dir,
            event_bus=event_bus,
            event_bus_source_name=event_bus_source_name,
            dynamo_table=dynamo_table,
            frontend_url=frontend_url,
            user_pool=user_pool,
            notifications_config=config.notifications_configuration,
            remote_config_url=config.remote_config_url,
            remote_config_headers=config.remote_config_headers,
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        self._idp_sync = IdpSync(
            self,
            "IdpSync",
            bundle_dir=bundle_dir,
            dynamo_table=dynamo_table,
            user_pool=user_pool,
            config=config,
            vpc_config=vpc_config,
        )
        self._cache_sync = CacheSync(
            self,
            "CacheSync",
            bundle_dir=bundle_dir,
            dynamo_table=dynamo_table,
            access_handler=access_handler,
            should_run_as_cron=config.should_run_cron_health_check_cache_sync,
            identity_group_filter=config.identity_group_filter,
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        self._health_checker = HealthChecker(
            self,
            "HealthCheck",
            bundle_dir=bundle_dir,
            dynamo_table=dynamo_table,
            provider_config=config.provider_config,
            should_run_as_cron=config.should_run_cron_health_check_cache_sync,
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )

    def _grant_auto_approval(self, function_arn: str) -> None:
        if resolve_state(function_arn) is ResourceState.ABSENT:
            return
        statement = iam.PolicyStatement(
            actions=["lambda:InvokeFunction"],
            resources=[function_arn],
        )
        condition = guard(self, "InvokeAutoApprovalLambdaCondition", function_arn)
        if condition is None:
            self._lambda.add_to_role_policy(statement)
            return
        # A token ARN may resolve to ""; keep the statement in its own conditional policy.
        policy = iam.Policy(
            self,
            "AutoApprovalInvokePolicy",
            statements=[statement],
            roles=[self._lambda.role],
        )
        apply_guard(policy, condition)

    def _associate_waf(self, web_acl_arn: str) -> wafv2.CfnWebACLAssociation | None:
        if resolve_state(web_acl_arn) is ResourceState.ABSENT:
            return None
        association = wafv2.CfnWebACLAssociation(
            self,
            "APIGatewayWebACLAssociation",
            resource_arn=self.routing.stage_arn,
            web_acl_arn=web_acl_arn,
        )
        apply_guard(
            association,
            guard(self, "CreateApiGatewayWafAssociationCondition", web_acl_arn),
        )
        return association

    def get_rest_api_url(self) -> str:
        return self.routing.url

    def get_webhook_api_url(self) -> str:
        return self.routing.url_for(WEBHOOK_PREFIX)

    def get_dynamo_table_name(self) -> str:
        return self._dynamo_table.table_name

    def get_dynamo_table(self) -> ddb.Table:
        return self._dynamo_table

    def get_log_group_name(self) -> str:
        return self._lambda.log_group_name

    def get_webhook_log_group_name(self) -> str:
        return self._webhook_lambda.log_group_name

    def get_event_handler(self) -> EventHandler:
        return self._event_handler

    def get_notifiers(self) -> Notifiers:
        return self._notifiers

    def get_idp_sync(self) -> IdpSync:
        return self._idp_sync

    def get_cache_sync(self) -> CacheSync:
        return self._cache_sync

    def get_health_checker(self) -> HealthChecker:
        return self._health_checker

    def get_kms_key_arn(self) -> str:
        return self._kms_key.key_arn

    def get_execution_role_arn(self) -> str:
        return self._lambda.execution_role_arn
