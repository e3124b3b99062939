import sys
from pathlib import Path

import pytest
from aws_cdk import RemovalPolicy

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stacks.config import DeploymentConfig, DeploymentConfigError, stack_name_from_env


def test_defaults_from_empty_environment():
    cfg = DeploymentConfig.from_env({})

    assert cfg.stage == "dev"
    assert cfg.app_name == "common-fate-dev"
    assert cfg.domain_prefix == "common-fate-dev"
    assert cfg.deployment_stage == "dev"
    assert cfg.removal_policy == RemovalPolicy.DESTROY
    assert cfg.idp_type == "COGNITO"
    assert cfg.admin_group_id == "granted_administrators"
    assert cfg.analytics_disabled == "false"
    assert cfg.idp_sync_schedule == "rate(5 minutes)"
    assert cfg.idp_sync_timeout_seconds == 30
    assert cfg.idp_sync_memory == 128
    assert cfg.should_run_cron_health_check_cache_sync is False
    assert cfg.auto_approval_lambda_arn == ""
    assert cfg.api_gateway_waf_acl_arn == ""


def test_values_are_stripped_and_normalized():
    cfg = DeploymentConfig.from_env(
        {
            "STAGE": " prod ",
            "DATA_RETENTION_MODE": "RETAIN",
            "IDP_TYPE": "okta",
            "ANALYTICS_DISABLED": "Yes",
            "ANALYTICS_DEPLOYMENT_STAGE": "prod-eu",
            "SHOULD_RUN_CRON_HEALTH_CHECK_CACHE_SYNC": "1",
            "IDENTITY_GROUP_FILTER": " engineering ",
            "IDP_SYNC_MEMORY": "512",
        }
    )

    assert cfg.stage == "prod"
    assert cfg.removal_policy == RemovalPolicy.RETAIN
    assert cfg.idp_type == "OKTA"
    assert cfg.analytics_disabled == "true"
    assert cfg.deployment_stage == "prod-eu"
    assert cfg.should_run_cron_health_check_cache_sync is True
    assert cfg.identity_group_filter == "engineering"
    assert cfg.idp_sync_memory == 512


def test_invalid_data_retention_mode_fails_fast():
    with pytest.raises(ValueError, match="DATA_RETENTION_MODE"):
        DeploymentConfig.from_env({"DATA_RETENTION_MODE": "keep-forever"})


@pytest.mark.parametrize(
    "env, match",
    [
        ({"SHOULD_RUN_CRON_HEALTH_CHECK_CACHE_SYNC": "maybe"}, "SHOULD_RUN_CRON_HEALTH_CHECK_CACHE_SYNC"),
        ({"IDP_SYNC_TIMEOUT_SECONDS": "soon"}, "IDP_SYNC_TIMEOUT_SECONDS must be an integer"),
        ({"IDP_SYNC_TIMEOUT_SECONDS": "901"}, "between 1 and 900"),
        ({"IDP_SYNC_MEMORY": "64"}, "between 128 and 10240"),
        ({"IDP_SYNC_SCHEDULE": "every 5 minutes"}, "IDP_SYNC_SCHEDULE"),
        ({"IDP_TYPE": "LDAP"}, "IDP_TYPE"),
    ],
)
def test_invalid_values_raise_config_error(env, match):
    with pytest.raises(DeploymentConfigError, match=match):
        DeploymentConfig.from_env(env)


def test_stack_name_defaults_to_stage():
    assert stack_name_from_env({}) == "CommonFate-dev"
    assert stack_name_from_env({"STAGE": "qa"}) == "CommonFate-qa"
    assert stack_name_from_env({"STAGE": "qa", "CDK_STACK_NAME": "Custom"}) == "Custom"


def test_to_dict_round_trips_field_names():
    cfg = DeploymentConfig.from_env({"AUTO_APPROVAL_LAMBDA_ARN": "arn:aws:lambda:us-east-1:111111111111:function:auto"})
    data = cfg.to_dict()

    assert data["auto_approval_lambda_arn"].endswith(":function:auto")
    assert DeploymentConfig(**data) == cfg
