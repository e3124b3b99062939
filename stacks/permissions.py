from aws_cdk import (
    Stack,
    aws_apigateway as apigw,
    aws_iam as iam,
    aws_lambda as _lambda,
)
from constructs import Construct

ABAC_ROLE_TAG = "iam:ResourceTag/common-fate-abac-role"

COGNITO_ADMIN_ACTIONS = [
    "cognito-idp:AdminListGroupsForUser",
    "cognito-idp:ListUsers",
    "cognito-idp:ListGroups",
    "cognito-idp:ListUsersInGroup",
    "cognito-idp:AdminGetUser",
    "cognito-idp:AdminListUserAuthEvents",
    "cognito-idp:AdminUserGlobalSignOut",
    "cognito-idp:DescribeUserPool",
    "cognito-idp:AdminAddUserToGroup",
    "cognito-idp:AdminCreateUser",
    "cognito-idp:CreateGroup",
    "cognito-idp:AdminRemoveUserFromGroup",
]


def ssm_parameter_arn(scope: Construct, path: str) -> str:
    stack = Stack.of(scope)
    return f"arn:aws:ssm:{stack.region}:{stack.account}:parameter/{path.lstrip('/')}"


def _grant_assume_tagged_role(fn: _lambda.IFunction, tag_value: str) -> None:
    # Target roles live in other accounts; the resource tag is the scope.
    fn.add_to_role_policy(
        iam.PolicyStatement(
            actions=["sts:AssumeRole"],
            resources=["*"],
            conditions={"StringEquals": {ABAC_ROLE_TAG: tag_value}},
        )
    )


def grant_assume_handler_role(fn: _lambda.IFunction) -> None:
    _grant_assume_tagged_role(fn, "access-provider")


def grant_assume_identity_sync_role(fn: _lambda.IFunction) -> None:
    _grant_assume_tagged_role(fn, "aws-sso-identity-provider")


def grant_invoke_rest_api(fn: _lambda.IFunction, api: apigw.RestApi) -> None:
    fn.add_to_role_policy(
        iam.PolicyStatement(
            actions=["execute-api:Invoke"],
            resources=[api.arn_for_execute_api()],
        )
    )


def grant_ssm_parameters(
    fn: _lambda.IFunction, scope: Construct, *, path: str, actions: list[str]
) -> None:
    fn.add_to_role_policy(
        iam.PolicyStatement(
            actions=actions,
            resources=[ssm_parameter_arn(scope, path)],
        )
    )
