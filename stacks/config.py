from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass
from typing import Any, Mapping

from aws_cdk import RemovalPolicy


class DeploymentConfigError(ValueError):
    pass


IDENTITY_PROVIDER_TYPES = (
    "COGNITO",
    "GOOGLE",
    "OKTA",
    "AZURE",
    "AD",
    "ONELOGIN",
    "AUTH0",
)
# Providers federated into the user pool over SAML.
SAML_IDENTITY_PROVIDER_TYPES = ("OKTA", "AZURE", "AD", "ONELOGIN", "AUTH0", "GOOGLE")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"", "0", "false", "no", "off"}
_SCHEDULE_RE = re.compile(r"^(rate|cron)\(.+\)$")


def _env(environ: Mapping[str, str], name: str, default: str = "") -> str:
    return (environ.get(name) or default).strip()


def _env_bool(environ: Mapping[str, str], name: str) -> bool:
    raw = _env(environ, name).lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise DeploymentConfigError(f"{name} must be a boolean (true/false), got {raw!r}")


def _env_int(
    environ: Mapping[str, str],
    name: str,
    default: int,
    *,
    minimum: int,
    maximum: int,
) -> int:
    raw = _env(environ, name)
    if not raw:
        return default
    try:
        val = int(raw)
    except ValueError as e:
        raise DeploymentConfigError(f"{name} must be an integer, got {raw!r}") from e
    if val < minimum or val > maximum:
        raise DeploymentConfigError(f"{name} must be between {minimum} and {maximum}, got {val}")
    return val


@dataclass(frozen=True)
class DeploymentConfig:
    """Flat configuration bag for one deployment.

    Every field maps to exactly one environment variable (see ``from_env``).
    Empty strings are meaningful: an empty ARN switches the matching
    conditional resource off.
    """

    stage: str = "dev"
    data_retention_mode: str = "destroy"
    bundle_dir: str = "bin"
    cognito_domain_prefix: str = ""
    idp_type: str = "COGNITO"
    provider_config: str = "{}"
    saml_metadata_url: str = ""
    saml_metadata: str = ""
    remote_config_url: str = ""
    remote_config_headers: str = ""
    notifications_configuration: str = "{}"
    identity_provider_sync_configuration: str = "{}"
    admin_group_id: str = "granted_administrators"
    cloudfront_waf_acl_arn: str = ""
    api_gateway_waf_acl_arn: str = ""
    analytics_disabled: str = "false"
    analytics_url: str = "https://t.commonfate.io"
    analytics_log_level: str = "info"
    analytics_deployment_stage: str = ""
    should_run_cron_health_check_cache_sync: bool = False
    identity_group_filter: str = ""
    idp_sync_timeout_seconds: int = 30
    idp_sync_schedule: str = "rate(5 minutes)"
    idp_sync_memory: int = 128
    auto_approval_lambda_arn: str = ""
    subnet_ids: str = ""
    security_groups: str = ""
    dev_callback_urls: str = ""

    def __post_init__(self) -> None:
        if not self.stage:
            raise DeploymentConfigError("STAGE must not be empty")
        if self.data_retention_mode not in {"destroy", "retain"}:
            raise DeploymentConfigError(
                "DATA_RETENTION_MODE must be 'destroy' or 'retain' (case-insensitive)"
            )
        if self.idp_type not in IDENTITY_PROVIDER_TYPES:
            raise DeploymentConfigError(
                f"IDP_TYPE must be one of {', '.join(IDENTITY_PROVIDER_TYPES)}, got {self.idp_type!r}"
            )
        if not _SCHEDULE_RE.match(self.idp_sync_schedule):
            raise DeploymentConfigError(
                f"IDP_SYNC_SCHEDULE must be a rate(...) or cron(...) expression, got {self.idp_sync_schedule!r}"
            )
        if self.analytics_disabled not in {"true", "false"}:
            raise DeploymentConfigError(
                f"ANALYTICS_DISABLED must be 'true' or 'false', got {self.analytics_disabled!r}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "DeploymentConfig":
        env = os.environ if environ is None else environ
        stage = _env(env, "STAGE", "dev")
        analytics_disabled = "true" if _env_bool(env, "ANALYTICS_DISABLED") else "false"
        return cls(
            stage=stage,
            data_retention_mode=_env(env, "DATA_RETENTION_MODE", "destroy").lower(),
            bundle_dir=_env(env, "BUNDLE_DIR", "bin"),
            cognito_domain_prefix=_env(env, "COGNITO_DOMAIN_PREFIX"),
            idp_type=_env(env, "IDP_TYPE", "COGNITO").upper(),
            provider_config=_env(env, "PROVIDER_CONFIG", "{}"),
            saml_metadata_url=_env(env, "SAML_METADATA_URL"),
            saml_metadata=_env(env, "SAML_METADATA"),
            remote_config_url=_env(env, "REMOTE_CONFIG_URL"),
            remote_config_headers=_env(env, "REMOTE_CONFIG_HEADERS"),
            notifications_configuration=_env(env, "NOTIFICATIONS_CONFIGURATION", "{}"),
            identity_provider_sync_configuration=_env(
                env, "IDENTITY_PROVIDER_SYNC_CONFIGURATION", "{}"
            ),
            admin_group_id=_env(env, "ADMIN_GROUP_ID", "granted_administrators"),
            cloudfront_waf_acl_arn=_env(env, "CLOUDFRONT_WAF_ACL_ARN"),
            api_gateway_waf_acl_arn=_env(env, "API_GATEWAY_WAF_ACL_ARN"),
            analytics_disabled=analytics_disabled,
            analytics_url=_env(env, "ANALYTICS_URL", "https://t.commonfate.io"),
            analytics_log_level=_env(env, "ANALYTICS_LOG_LEVEL", "info"),
            analytics_deployment_stage=_env(env, "ANALYTICS_DEPLOYMENT_STAGE"),
            should_run_cron_health_check_cache_sync=_env_bool(
                env, "SHOULD_RUN_CRON_HEALTH_CHECK_CACHE_SYNC"
            ),
            identity_group_filter=_env(env, "IDENTITY_GROUP_FILTER"),
            idp_sync_timeout_seconds=_env_int(
                env, "IDP_SYNC_TIMEOUT_SECONDS", 30, minimum=1, maximum=900
            ),
            idp_sync_schedule=_env(env, "IDP_SYNC_SCHEDULE", "rate(5 minutes)"),
            idp_sync_memory=_env_int(env, "IDP_SYNC_MEMORY", 128, minimum=128, maximum=10240),
            auto_approval_lambda_arn=_env(env, "AUTO_APPROVAL_LAMBDA_ARN"),
            subnet_ids=_env(env, "SUBNET_IDS"),
            security_groups=_env(env, "SECURITY_GROUPS"),
            dev_callback_urls=_env(env, "DEV_CALLBACK_URLS"),
        )

    @property
    def app_name(self) -> str:
        return f"common-fate-{self.stage}"

    @property
    def domain_prefix(self) -> str:
        return self.cognito_domain_prefix or self.app_name

    @property
    def deployment_stage(self) -> str:
        return self.analytics_deployment_stage or self.stage

    @property
    def removal_policy(self) -> RemovalPolicy:
        # Dev-first default: delete stateful resources on teardown.
        if self.data_retention_mode == "destroy":
            return RemovalPolicy.DESTROY
        return RemovalPolicy.RETAIN

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def stack_name_from_env(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    return _env(env, "CDK_STACK_NAME") or f"CommonFate-{_env(env, 'STAGE', 'dev')}"
