from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    Duration,
    RemovalPolicy,
    aws_cloudwatch as cloudwatch,
    aws_dynamodb as ddb,
    aws_events as events,
    aws_events_targets as events_targets,
    aws_iam as iam,
)
from constructs import Construct

from stacks.lambda_base import SLACK_NOTIFIER_UNIT, BaseLambdaFunction, VpcConfig
from stacks.permissions import grant_ssm_parameters
from stacks.user_pool import WebUserPool

# Retries EventBridge makes after a failed invocation before giving up on an event.
NOTIFIER_RETRY_ATTEMPTS = 2


class Notifiers(Construct):
    """Slack notifications for every event published on the shared bus."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bundle_dir: str | Path,
        event_bus: events.IEventBus,
        event_bus_source_name: str,
        dynamo_table: ddb.ITable,
        frontend_url: str,
        user_pool: WebUserPool,
        notifications_config: str,
        remote_config_url: str = "",
        remote_config_headers: str = "",
        vpc_config: VpcConfig | None = None,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._slack_lambda = BaseLambdaFunction(
            self,
            "SlackNotifierFunction",
            unit=SLACK_NOTIFIER_UNIT,
            bundle_dir=bundle_dir,
            environment={
                "COMMONFATE_TABLE_NAME": dynamo_table.table_name,
                "COMMONFATE_FRONTEND_URL": frontend_url,
                "COMMONFATE_COGNITO_USER_POOL_ID": user_pool.get_user_pool_id(),
                "COMMONFATE_NOTIFICATIONS_SETTINGS": notifications_config,
                "COMMONFATE_ACCESS_REMOTE_CONFIG_URL": remote_config_url,
                "COMMONFATE_REMOTE_CONFIG_HEADERS": remote_config_headers,
            },
            vpc_config=vpc_config,
            removal_policy=removal_policy,
        )
        grant_ssm_parameters(
            self._slack_lambda,
            self,
            path="granted/secrets/notifications/*",
            actions=["ssm:GetParameter"],
        )

        self._slack_rule = events.Rule(
            self,
            "SlackNotifierEventBridgeRule",
            event_bus=event_bus,
            event_pattern=events.EventPattern(source=[event_bus_source_name]),
            targets=[
                events_targets.LambdaFunction(
                    self._slack_lambda,
                    retry_attempts=NOTIFIER_RETRY_ATTEMPTS,
                )
            ],
        )

        dynamo_table.grant_read_write_data(self._slack_lambda)
        self._slack_lambda.add_to_role_policy(
            iam.PolicyStatement(
                actions=["cognito-idp:AdminGetUser"],
                resources=[user_pool.get_user_pool().user_pool_arn],
            )
        )

        # Events that exhaust their retries are dropped; make that visible.
        cloudwatch.Alarm(
            self,
            "SlackNotifierFailedInvocationsAlarm",
            metric=cloudwatch.Metric(
                namespace="AWS/Events",
                metric_name="FailedInvocations",
                dimensions_map={
                    "EventBusName": event_bus.event_bus_name,
                    "RuleName": self.get_slack_rule_name(),
                },
                statistic="Sum",
                period=Duration.minutes(5),
            ),
            threshold=1,
            evaluation_periods=1,
            datapoints_to_alarm=1,
            treat_missing_data=cloudwatch.TreatMissingData.NOT_BREACHING,
        )

    def get_slack_rule_name(self) -> str:
        return self._slack_rule.rule_name

    def get_slack_log_group_name(self) -> str:
        return self._slack_lambda.log_group_name
