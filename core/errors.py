"""Exception hierarchy for the deploy webhook.

Engine failures carry the deployment stage they happened in so the
orchestrator can report and count them without inspecting docker errors.
"""
from typing import Optional


class DeployWebhookError(Exception):
    """Base class for all errors raised by this service."""


class EndpointResolutionError(DeployWebhookError):
    """The container engine endpoint could not be discovered at startup."""


class RuntimeOperationError(DeployWebhookError):
    stage = "runtime"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RuntimeListError(RuntimeOperationError):
    stage = "list"


class RuntimeStopError(RuntimeOperationError):
    stage = "stop"


class RuntimePullError(RuntimeOperationError):
    """Pull failed, including registry authentication failures."""

    stage = "pull"


class RuntimeRunError(RuntimeOperationError):
    """Run failed, including container name collisions."""

    stage = "run"
