from __future__ import annotations

from dataclasses import dataclass

from aws_cdk import (
    Aws,
    Fn,
    RemovalPolicy,
    Token,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_s3 as s3,
)
from constructs import Construct

from stacks.conditions import ResourceState, guard, resolve_state


@dataclass(frozen=True)
class DevEnvironmentConfig:
    """Extra OAuth callback URLs for developers running the frontend locally."""

    callback_urls: tuple[str, ...] = ()

    @classmethod
    def from_csv(cls, raw: str) -> "DevEnvironmentConfig | None":
        urls = tuple(part.strip() for part in (raw or "").split(",") if part.strip())
        if not urls:
            return None
        return cls(callback_urls=urls)


class AppFrontend(Construct):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_name: str,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._app_name = app_name
        self._dev_config: DevEnvironmentConfig | None = None
        self._distribution: cloudfront.Distribution | None = None
        self._bucket = s3.Bucket(
            self,
            "FrontendBucket",
            removal_policy=removal_policy,
            auto_delete_objects=removal_policy == RemovalPolicy.DESTROY,
            enforce_ssl=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
        )

    def with_dev_cdn(
        self,
        stage: str,
        dev_config: DevEnvironmentConfig | None,
        cloudfront_waf_acl_arn: str = "",
    ) -> "AppFrontend":
        """Put a CloudFront distribution in front of the bucket and return self."""
        self._dev_config = dev_config

        web_acl_id = None
        if resolve_state(cloudfront_waf_acl_arn) is ResourceState.ENABLED:
            condition = guard(self, "CreateCloudFrontWafCondition", cloudfront_waf_acl_arn)
            if condition is None:
                web_acl_id = cloudfront_waf_acl_arn
            else:
                web_acl_id = Token.as_string(
                    Fn.condition_if(condition.logical_id, cloudfront_waf_acl_arn, Aws.NO_VALUE)
                )

        self._distribution = cloudfront.Distribution(
            self,
            "Distribution",
            comment=f"{self._app_name} frontend ({stage})",
            default_root_object="index.html",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_control(self._bucket),
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD,
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
            ),
            # Single-page app: unknown paths render index.html.
            error_responses=[
                cloudfront.ErrorResponse(
                    http_status=403,
                    response_http_status=200,
                    response_page_path="/index.html",
                ),
                cloudfront.ErrorResponse(
                    http_status=404,
                    response_http_status=200,
                    response_page_path="/index.html",
                ),
            ],
            minimum_protocol_version=cloudfront.SecurityPolicyProtocol.TLS_V1_2_2021,
            web_acl_id=web_acl_id,
        )
        return self

    def _require_distribution(self) -> cloudfront.Distribution:
        if self._distribution is None:
            raise ValueError("AppFrontend has no distribution yet; call with_dev_cdn() first")
        return self._distribution

    def get_domain_name(self) -> str:
        return self._require_distribution().distribution_domain_name

    def get_cloudfront_domain(self) -> str:
        return self._require_distribution().distribution_domain_name

    def get_distribution_id(self) -> str:
        return self._require_distribution().distribution_id

    def get_bucket_name(self) -> str:
        return self._bucket.bucket_name

    def get_dev_callback_urls(self) -> list[str]:
        if self._dev_config is None:
            return []
        return list(self._dev_config.callback_urls)
