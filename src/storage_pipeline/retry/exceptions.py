"""
Retry engine exceptions.

The engine never synthesizes a "too many retries" error: callers see the
last real response or error. RetryInvariantError covers the one case
where neither exists.
"""

from storage_pipeline.exceptions import StoragePipelineError


class RetryInvariantError(StoragePipelineError):
    """
    Raised when an attempt produced neither a response nor an error.

    This indicates a broken policy or transport further down the pipeline
    (e.g. one returning None).
    """

    def __init__(self, retry_count: int):
        super().__init__(
            "Maximum retries reached with no response or error to throw",
            details={"retry_count": retry_count},
        )
        self.retry_count = retry_count
