"""
Storage pipeline factory.

Layout (outermost first):
    userAgentPolicy, setClientRequestIdPolicy      (None)
    throwOnErrorPolicy                             (Deserialize)
    storageRetryPolicy                             (Retry)
    bearerTokenAuthenticationPolicy                (Sign, optional)
    logPolicy                                      (after Sign)
"""

from typing import Optional

import structlog

from storage_pipeline.config import Settings, settings as default_settings
from storage_pipeline.models.enums import PipelinePhase
from storage_pipeline.pipeline.pipeline import Pipeline
from storage_pipeline.pipeline.policy import PolicyOptions
from storage_pipeline.policies.bearer_token import GetToken, bearer_token_authentication_policy
from storage_pipeline.policies.standard import (
    log_policy,
    set_client_request_id_policy,
    throw_on_error_policy,
    user_agent_policy,
)
from storage_pipeline.storage.retry_policy import StorageRetryOptions, storage_retry_policy

logger = structlog.get_logger(__name__)


def storage_retry_options_from_settings(settings: Settings) -> StorageRetryOptions:
    """Map STORAGE_* settings onto StorageRetryOptions."""
    return StorageRetryOptions(
        retry_policy_type=settings.RETRY_POLICY_TYPE,
        max_tries=settings.STORAGE_MAX_TRIES,
        retry_delay_in_ms=settings.STORAGE_RETRY_DELAY_MS,
        max_retry_delay_in_ms=settings.STORAGE_MAX_RETRY_DELAY_MS,
        secondary_host=settings.SECONDARY_HOST,
        try_timeout_in_ms=settings.TRY_TIMEOUT_MS,
    )


def new_storage_pipeline(
    settings: Optional[Settings] = None,
    get_token: Optional[GetToken] = None,
    retry_options: Optional[StorageRetryOptions] = None,
) -> Pipeline:
    """
    Build the pipeline used by storage clients.

    Args:
        settings: Source of defaults (module-level settings when omitted)
        get_token: Async token provider; anonymous/SAS access when omitted
        retry_options: Overrides the retry options derived from settings
    """
    settings = settings or default_settings
    retry_options = retry_options or storage_retry_options_from_settings(settings)

    pipeline = Pipeline.create()
    pipeline.add_policy(user_agent_policy(settings.USER_AGENT_PREFIX))
    pipeline.add_policy(set_client_request_id_policy())
    pipeline.add_policy(throw_on_error_policy(), PolicyOptions(phase=PipelinePhase.DESERIALIZE))
    pipeline.add_policy(storage_retry_policy(retry_options), PolicyOptions(phase=PipelinePhase.RETRY))
    if get_token is not None:
        pipeline.add_policy(
            bearer_token_authentication_policy(get_token, settings.STORAGE_SCOPES),
            PolicyOptions(phase=PipelinePhase.SIGN),
        )
    pipeline.add_policy(log_policy(), PolicyOptions(after_phase=PipelinePhase.SIGN))
    pipeline.get_ordered_policies()

    logger.info(
        "Storage pipeline created",
        secondary_host=retry_options.secondary_host,
        max_tries=retry_options.max_tries,
        authenticated=get_token is not None,
    )
    return pipeline
