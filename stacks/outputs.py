from __future__ import annotations

from typing import Mapping

from aws_cdk import CfnOutput
from constructs import Construct

# Every deployment publishes exactly these outputs; the CLI and frontend build read them by name.
STACK_OUTPUT_KEYS = (
    "CognitoClientID",
    "CloudFrontDomain",
    "FrontendDomainOutput",
    "CloudFrontDistributionID",
    "S3BucketName",
    "UserPoolID",
    "UserPoolDomain",
    "APIURL",
    "WebhookURL",
    "GovernanceURL",
    "APILogGroupName",
    "WebhookLogGroupName",
    "IDPSyncLogGroupName",
    "AccessHandlerLogGroupName",
    "EventBusLogGroupName",
    "EventsHandlerLogGroupName",
    "GranterLogGroupName",
    "SlackNotifierLogGroupName",
    "GovernanceAPILogGroupName",
    "DynamoDBTable",
    "GranterStateMachineArn",
    "EventBusArn",
    "EventBusSource",
    "IdpSyncFunctionName",
    "SAMLIdentityProviderName",
    "Region",
    "PaginationKMSKeyARN",
    "AccessHandlerExecutionRoleARN",
    "CacheSyncLogGroupName",
    "IDPSyncExecutionRoleARN",
    "RestAPIExecutionRoleARN",
    "CacheSyncFunctionName",
    "CLIAppClientID",
    "HealthcheckFunctionName",
    "HealthcheckLogGroupName",
    "GranterV2StateMachineArn",
)


def generate_outputs(scope: Construct, outputs: Mapping[str, str]) -> list[CfnOutput]:
    missing = [k for k in STACK_OUTPUT_KEYS if k not in outputs]
    unknown = sorted(k for k in outputs if k not in STACK_OUTPUT_KEYS)
    if missing or unknown:
        parts = []
        if missing:
            parts.append(f"missing: {', '.join(missing)}")
        if unknown:
            parts.append(f"unknown: {', '.join(unknown)}")
        raise ValueError(f"stack outputs do not match the published set ({'; '.join(parts)})")

    return [CfnOutput(scope, key, value=outputs[key]) for key in STACK_OUTPUT_KEYS]
