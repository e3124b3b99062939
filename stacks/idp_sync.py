from __future__ import annotations

import dataclasses
from pathlib import Path

from aws_cdk import (
    RemovalPolicy,
    aws_dynamodb as ddb,
    aws_events as events,
    aws_events_targets as events_targets,
    aws_iam as iam,
)
from constructs import Construct

from stacks.config import DeploymentConfig
from stacks.lambda_base import IDP_SYNC_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_assume_identity_sync_role, grant_ssm_parameters
from stacks.user_pool import WebUserPool

IDP_SYNC_COGNITO_ACTIONS = [
    "cognito-idp:AdminListGroupsForUser",
    "cognito-idp:ListUsers",
    "cognito-idp:ListGroups",
    "cognito-idp:ListUsersInGroup",
    "cognito-idp:AdminGetUser",
    "cognito-idp:AdminAddUserToGroup",
    "cognito-idp:AdminCreateUser",
    "cognito-idp:CreateGroup",
    "cognito-idp:AdminRemoveUserFromGroup",
]


class IdpSync(Construct):
    """Periodically mirrors users and groups from the identity provider into the table.

    Schedule, memory and timeout come from ``DeploymentConfig`` so large
    directories can be given more headroom without a code change.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bundle_dir: str | Path,
        dynamo_table: ddb.ITable,
        user_pool: WebUserPool,
        config: DeploymentConfig,
        vpc_config: VpcConfig | None = None,
    ) -> None:
        super().__init__(scope, construct_id)

        unit = dataclasses.replace(
            IDP_SYNC_UNIT,
            timeout_seconds=config.idp_sync_timeout_seconds,
            memory_size=config.idp_sync_memory,
        )
        self._lambda = BaseLambdaFunction(
            self,
            "HandlerFunction",
            unit=unit,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_TABLE_NAME": dynamo_table.table_name,
                "COMMONFATE_COGNITO_USER_POOL_ID": user_pool.get_user_pool_id(),
                "COMMONFATE_IDENTITY_PROVIDER": user_pool.get_idp_type(),
                "COMMONFATE_IDENTITY_SETTINGS": config.identity_provider_sync_configuration,
                "CF_ANALYTICS_DISABLED": config.analytics_disabled,
                "CF_ANALYTICS_URL": config.analytics_url,
                "CF_ANALYTICS_LOG_LEVEL": config.analytics_log_level,
                "CF_ANALYTICS_DEPLOYMENT_STAGE": config.deployment_stage,
                "COMMONFATE_IDENTITY_GROUP_FILTER": config.identity_group_filter,
            },
            vpc_config=vpc_config,
            removal_policy=config.removal_policy,
        )
        dynamo_table.grant_read_write_data(self._lambda)
        self._lambda.add_to_role_policy(
            iam.PolicyStatement(
                actions=IDP_SYNC_COGNITO_ACTIONS,
                resources=[user_pool.get_user_pool().user_pool_arn],
            )
        )
        grant_ssm_parameters(
            self._lambda,
            self,
            path="granted/secrets/identity/*",
            actions=["ssm:GetParameter"],
        )
        grant_assume_identity_sync_role(self._lambda)

        self._rule = events.Rule(
            self,
            "EventBridgeCronRule",
            schedule=events.Schedule.expression(config.idp_sync_schedule),
            targets=[events_targets.LambdaFunction(self._lambda)],
        )

    def get_log_group_name(self) -> str:
        return self._lambda.log_group_name

    def get_function_name(self) -> str:
        return self._lambda.function_name

    def get_execution_role_arn(self) -> str:
        return self._lambda.execution_role_arn
