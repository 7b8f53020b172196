"""
Built-in pipeline policies.

Components:
- UserAgentPolicy, SetClientRequestIdPolicy: request decoration
- ThrowOnErrorPolicy: non-2xx responses become RestError
- LogPolicy: structured request/response logging with redaction
- BearerTokenAuthenticationPolicy: cached bearer tokens
- create_pipeline_from_options / create_pipeline_from_settings: default pipeline assembly
"""

from storage_pipeline.policies.bearer_token import (
    AccessToken,
    BearerTokenAuthenticationPolicy,
    bearer_token_authentication_policy,
)
from storage_pipeline.policies.defaults import (
    create_pipeline_from_options,
    create_pipeline_from_settings,
)
from storage_pipeline.policies.standard import (
    LogPolicy,
    SetClientRequestIdPolicy,
    ThrowOnErrorPolicy,
    UserAgentPolicy,
    log_policy,
    set_client_request_id_policy,
    throw_on_error_policy,
    user_agent_policy,
)

__all__ = [
    "AccessToken",
    "BearerTokenAuthenticationPolicy",
    "bearer_token_authentication_policy",
    "create_pipeline_from_options",
    "create_pipeline_from_settings",
    "LogPolicy",
    "SetClientRequestIdPolicy",
    "ThrowOnErrorPolicy",
    "UserAgentPolicy",
    "log_policy",
    "set_client_request_id_policy",
    "throw_on_error_policy",
    "user_agent_policy",
]
