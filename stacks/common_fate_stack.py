from aws_cdk import (
    Duration,
    Stack,
    aws_kms as kms,
)
from constructs import Construct

from stacks.access_handler import AccessHandler
from stacks.app_backend import AppBackend
from stacks.config import DeploymentConfig
from stacks.database import Database
from stacks.event_bus import EventBus
from stacks.frontend import AppFrontend, DevEnvironmentConfig
from stacks.governance import Governance
from stacks.lambda_base import VpcConfig
from stacks.outputs import generate_outputs
from stacks.targetgroup_granter import TargetGroupGranter
from stacks.user_pool import WebUserPool


class CommonFateStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: DeploymentConfig,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        app_name = config.app_name
        removal_policy = config.removal_policy
        bundle_dir = config.bundle_dir

        vpc_config = VpcConfig.from_csv(
            self,
            subnet_ids=config.subnet_ids,
            security_groups=config.security_groups,
        )

        db = Database(self, "Database", app_name=app_name, removal_policy=removal_policy)

        cdn = AppFrontend(
            self,
            "Frontend",
            app_name=app_name,
            removal_policy=removal_policy,
        ).with_dev_cdn(
            config.stage,
            DevEnvironmentConfig.from_csv(config.dev_callback_urls),
            config.cloudfront_waf_acl_arn,
        )
        frontend_url = f"https://{cdn.get_domain_name()}"

        user_pool = WebUserPool(
            self,
            "WebUserPool",
            app_name=app_name,
            domain_prefix=config.domain_prefix,
            frontend_url=frontend_url,
            callback_urls=cdn.get_dev_callback_urls(),
            idp_type=config.idp_type,
            saml_metadata_url=config.saml_metadata_url,
            saml_metadata=config.saml_metadata,
            admin_group_id=config.admin_group_id,
            removal_policy=removal_policy,
        )

        bus = EventBus(self, "EventBus", app_name=app_name, removal_policy=removal_policy)

        access_handler = AccessHandler(
            self,
            "AccessHandler",
            app_name=app_name,
            bundle_dir=bundle_dir,
            event_bus=bus.get_event_bus(),
            event_bus_source_name=bus.get_event_bus_source_name(),
            provider_config=config.provider_config,
            remote_config_url=config.remote_config_url,
            remote_config_headers=config.remote_config_headers,
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )

        # Shared by the governance API and the main API for pagination tokens.
        kms_key = kms.Key(
            self,
            "PaginationKMSKey",
            removal_policy=removal_policy,
            pending_window=Duration.days(7),
            enable_key_rotation=True,
            description="Used for encrypting and decrypting pagination tokens for Common Fate",
        )

        governance = Governance(
            self,
            "Governance",
            app_name=app_name,
            bundle_dir=bundle_dir,
            kms_key=kms_key,
            access_handler=access_handler,
            provider_config=config.provider_config,
            dynamo_table=db.get_table(),
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        target_group_granter = TargetGroupGranter(
            self,
            "TargetGroupGranter",
            bundle_dir=bundle_dir,
            event_bus=bus.get_event_bus(),
            event_bus_source_name=bus.get_event_bus_source_name(),
            dynamo_table=db.get_table(),
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        backend = AppBackend(
            self,
            "API",
            app_name=app_name,
            user_pool=user_pool,
            frontend_url=frontend_url,
            access_handler=access_handler,
            governance=governance,
            event_bus=bus.get_event_bus(),
            event_bus_source_name=bus.get_event_bus_source_name(),
            dynamo_table=db.get_table(),
            kms_key=kms_key,
            target_group_granter=target_group_granter,
            vpc_config=vpc_config,
            config=config,
        )
        self.backend = backend

        granter = access_handler.get_granter()
        generate_outputs(
            self,
            {
                "CognitoClientID": user_pool.get_user_pool_client_id(),
                "CloudFrontDomain": cdn.get_cloudfront_domain(),
                "FrontendDomainOutput": cdn.get_domain_name(),
                "CloudFrontDistributionID": cdn.get_distribution_id(),
                "S3BucketName": cdn.get_bucket_name(),
                "UserPoolID": user_pool.get_user_pool_id(),
                "UserPoolDomain": user_pool.get_user_pool_login_fqdn(),
                "APIURL": backend.get_rest_api_url(),
                "WebhookURL": backend.get_webhook_api_url(),
                "GovernanceURL": governance.get_governance_api_url(),
                "APILogGroupName": backend.get_log_group_name(),
                "WebhookLogGroupName": backend.get_webhook_log_group_name(),
                "IDPSyncLogGroupName": backend.get_idp_sync().get_log_group_name(),
                "AccessHandlerLogGroupName": access_handler.get_log_group_name(),
                "EventBusLogGroupName": bus.get_log_group_name(),
                "EventsHandlerLogGroupName": backend.get_event_handler().get_log_group_name(),
                "GranterLogGroupName": granter.get_log_group_name(),
                "SlackNotifierLogGroupName": backend.get_notifiers().get_slack_log_group_name(),
                "GovernanceAPILogGroupName": governance.get_governance_log_group_name(),
                "DynamoDBTable": backend.get_dynamo_table_name(),
                "GranterStateMachineArn": granter.get_state_machine_arn(),
                "EventBusArn": bus.get_event_bus().event_bus_arn,
                "EventBusSource": bus.get_event_bus_source_name(),
                "IdpSyncFunctionName": backend.get_idp_sync().get_function_name(),
                "SAMLIdentityProviderName": user_pool.get_saml_identity_provider_name(),
                "Region": self.region,
                "PaginationKMSKeyARN": backend.get_kms_key_arn(),
                "AccessHandlerExecutionRoleARN": access_handler.get_access_handler_execution_role_arn(),
                "CacheSyncLogGroupName": backend.get_cache_sync().get_log_group_name(),
                "IDPSyncExecutionRoleARN": backend.get_idp_sync().get_execution_role_arn(),
                "RestAPIExecutionRoleARN": backend.get_execution_role_arn(),
                "CacheSyncFunctionName": backend.get_cache_sync().get_function_name(),
                "CLIAppClientID": user_pool.get_cli_app_client().user_pool_client_id,
                "HealthcheckFunctionName": backend.get_health_checker().get_function_name(),
                "HealthcheckLogGroupName": backend.get_health_checker().get_log_group_name(),
                "GranterV2StateMachineArn": target_group_granter.get_state_machine_arn(),
            },
        )
