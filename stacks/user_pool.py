from __future__ import annotations

from typing import Sequence

from aws_cdk import (
    Duration,
    RemovalPolicy,
    Stack,
    aws_cognito as cognito,
)
from constructs import Construct

from stacks.config import SAML_IDENTITY_PROVIDER_TYPES

# Local loopback port the CLI listens on during the browser login flow.
CLI_CALLBACK_URL = "http://localhost:18900/auth/cognito/callback"


class WebUserPool(Construct):
    """Cognito pool fronting the web app and the CLI, optionally federated over SAML."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_name: str,
        domain_prefix: str,
        frontend_url: str,
        callback_urls: Sequence[str] = (),
        idp_type: str = "COGNITO",
        saml_metadata_url: str = "",
        saml_metadata: str = "",
        admin_group_id: str = "granted_administrators",
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._idp_type = idp_type
        self._user_pool = cognito.UserPool(
            self,
            "UserPool",
            user_pool_name=app_name,
            self_sign_up_enabled=False,
            sign_in_aliases=cognito.SignInAliases(email=True),
            auto_verify=cognito.AutoVerifiedAttrs(email=True),
            password_policy=cognito.PasswordPolicy(
                min_length=12,
                require_digits=True,
                require_lowercase=True,
                require_uppercase=True,
                require_symbols=True,
            ),
            removal_policy=removal_policy,
        )
        self._domain = self._user_pool.add_domain(
            "UserPoolDomain",
            cognito_domain=cognito.CognitoDomainOptions(domain_prefix=domain_prefix),
        )

        # Built-in users get the admin group up front; federated pools sync groups from the IdP.
        if idp_type == "COGNITO":
            cognito.CfnUserPoolGroup(
                self,
                "AdministratorsGroup",
                user_pool_id=self._user_pool.user_pool_id,
                group_name=admin_group_id,
                description="Common Fate administrators",
            )

        self._saml_provider: cognito.UserPoolIdentityProviderSaml | None = None
        supported = [cognito.UserPoolClientIdentityProvider.COGNITO]
        if idp_type in SAML_IDENTITY_PROVIDER_TYPES and (saml_metadata_url or saml_metadata):
            metadata = (
                cognito.UserPoolIdentityProviderSamlMetadata.url(saml_metadata_url)
                if saml_metadata_url
                else cognito.UserPoolIdentityProviderSamlMetadata.file(saml_metadata)
            )
            self._saml_provider = cognito.UserPoolIdentityProviderSaml(
                self,
                "SamlIdentityProvider",
                user_pool=self._user_pool,
                name=f"{idp_type.lower()}-saml",
                metadata=metadata,
                attribute_mapping=cognito.AttributeMapping(
                    email=cognito.ProviderAttribute.other(
                        "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress"
                    ),
                ),
            )
            supported = [
                cognito.UserPoolClientIdentityProvider.custom(self._saml_provider.provider_name)
            ]

        urls = [frontend_url, *callback_urls]
        self._web_client = self._user_pool.add_client(
            "WebAppClient",
            generate_secret=False,
            supported_identity_providers=supported,
            o_auth=cognito.OAuthSettings(
                flows=cognito.OAuthFlows(authorization_code_grant=True),
                scopes=[cognito.OAuthScope.OPENID, cognito.OAuthScope.EMAIL],
                callback_urls=urls,
                logout_urls=urls,
            ),
            refresh_token_validity=Duration.days(1),
        )
        self._cli_client = self._user_pool.add_client(
            "CLIAppClient",
            generate_secret=False,
            supported_identity_providers=supported,
            o_auth=cognito.OAuthSettings(
                flows=cognito.OAuthFlows(authorization_code_grant=True),
                scopes=[cognito.OAuthScope.OPENID, cognito.OAuthScope.EMAIL],
                callback_urls=[CLI_CALLBACK_URL],
            ),
        )
        if self._saml_provider is not None:
            self._web_client.node.add_dependency(self._saml_provider)
            self._cli_client.node.add_dependency(self._saml_provider)

    def get_user_pool(self) -> cognito.UserPool:
        return self._user_pool

    def get_user_pool_id(self) -> str:
        return self._user_pool.user_pool_id

    def get_user_pool_client_id(self) -> str:
        return self._web_client.user_pool_client_id

    def get_cli_app_client(self) -> cognito.UserPoolClient:
        return self._cli_client

    def get_idp_type(self) -> str:
        return self._idp_type

    def get_user_pool_login_fqdn(self) -> str:
        return f"{self._domain.domain_name}.auth.{Stack.of(self).region}.amazoncognito.com"

    def get_saml_identity_provider_name(self) -> str:
        if self._saml_provider is None:
            return ""
        return self._saml_provider.provider_name
