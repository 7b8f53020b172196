"""
Default pipeline assembly.

Layout (outermost first):
    userAgentPolicy, setClientRequestIdPolicy      (None)
    defaultRetryPolicy                             (Retry)
    bearerTokenAuthenticationPolicy                (Sign, optional)
    logPolicy                                      (after Sign)
"""

from typing import Optional, Sequence

from storage_pipeline.config import Settings, settings as default_settings
from storage_pipeline.models.enums import PipelinePhase
from storage_pipeline.pipeline.pipeline import Pipeline
from storage_pipeline.pipeline.policy import PolicyOptions
from storage_pipeline.policies.bearer_token import GetToken, bearer_token_authentication_policy
from storage_pipeline.policies.standard import (
    log_policy,
    set_client_request_id_policy,
    user_agent_policy,
)
from storage_pipeline.retry.policies import default_retry_policy
from storage_pipeline.retry.strategies import (
    DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
    DEFAULT_CLIENT_RETRY_INTERVAL_MS,
)


def create_pipeline_from_options(
    user_agent_prefix: Optional[str] = None,
    max_retries: int = 3,
    retry_delay_in_ms: float = DEFAULT_CLIENT_RETRY_INTERVAL_MS,
    max_retry_delay_in_ms: float = DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
    get_token: Optional[GetToken] = None,
    scopes: Sequence[str] = (),
) -> Pipeline:
    """
    Build the general-purpose pipeline.

    Args:
        user_agent_prefix: Prepended to the User-Agent header
        max_retries: Retries after the first attempt
        retry_delay_in_ms: Exponential backoff base
        max_retry_delay_in_ms: Exponential backoff cap
        get_token: Async token provider; no auth policy when omitted
        scopes: Scopes passed to ``get_token``
    """
    pipeline = Pipeline.create()
    pipeline.add_policy(user_agent_policy(user_agent_prefix))
    pipeline.add_policy(set_client_request_id_policy())
    pipeline.add_policy(
        default_retry_policy(
            max_retries=max_retries,
            retry_delay_in_ms=retry_delay_in_ms,
            max_retry_delay_in_ms=max_retry_delay_in_ms,
        ),
        PolicyOptions(phase=PipelinePhase.RETRY),
    )
    if get_token is not None:
        pipeline.add_policy(
            bearer_token_authentication_policy(get_token, scopes),
            PolicyOptions(phase=PipelinePhase.SIGN),
        )
    pipeline.add_policy(log_policy(), PolicyOptions(after_phase=PipelinePhase.SIGN))
    pipeline.get_ordered_policies()
    return pipeline


def create_pipeline_from_settings(
    settings: Optional[Settings] = None, get_token: Optional[GetToken] = None
) -> Pipeline:
    """Default pipeline configured from MAX_RETRIES / RETRY_DELAY_MS / USER_AGENT_PREFIX."""
    settings = settings or default_settings
    return create_pipeline_from_options(
        user_agent_prefix=settings.USER_AGENT_PREFIX,
        max_retries=settings.MAX_RETRIES,
        retry_delay_in_ms=settings.RETRY_DELAY_MS,
        max_retry_delay_in_ms=settings.MAX_RETRY_DELAY_MS,
        get_token=get_token,
        scopes=settings.STORAGE_SCOPES,
    )
