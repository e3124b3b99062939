from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    RemovalPolicy,
    aws_apigateway as apigw,
    aws_dynamodb as ddb,
    aws_kms as kms,
)
from constructs import Construct

from stacks.access_handler import AccessHandler
from stacks.lambda_base import GOVERNANCE_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_invoke_rest_api
from stacks.routing import RoutingFacade


class Governance(Construct):
    """Administrative API for managing access rules programmatically."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_name: str,
        bundle_dir: str | Path,
        kms_key: kms.IKey,
        access_handler: AccessHandler,
        provider_config: str,
        dynamo_table: ddb.ITable,
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._lambda = BaseLambdaFunction(
            self,
            "GovernanceHandlerFunction",
            unit=GOVERNANCE_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_TABLE_NAME": dynamo_table.table_name,
                "COMMONFATE_ACCESS_HANDLER_URL": access_handler.get_api_url(),
                "COMMONFATE_PROVIDER_CONFIG": provider_config,
                "COMMONFATE_PAGINATION_KMS_KEY_ARN": kms_key.key_arn,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        dynamo_table.grant_read_write_data(self._lambda)
        kms_key.grant_encrypt_decrypt(self._lambda)
        grant_invoke_rest_api(self._lambda, access_handler.get_api_gateway())

        self._routing = RoutingFacade(
            self,
            "Routing",
            rest_api_name=f"{app_name}-governance",
            cloud_watch_role=False,
            removal_policy=removal_policy,
        )
        self._routing.add_proxy_route(
            "gov/v1",
            self._lambda,
            owner="governance",
            authorization_type=apigw.AuthorizationType.IAM,
        )

    def get_governance_api_url(self) -> str:
        return self._routing.url

    def get_governance_log_group_name(self) -> str:
        return self._lambda.log_group_name
