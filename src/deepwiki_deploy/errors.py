"""Exceptions raised by the deployment tooling.

Every failure the tooling detects is a DeploymentError; the CLI turns it into a
one-line diagnostic and a non-zero exit code. Declining a change set is not an
error and has no exception here.
"""
from typing import Optional


class DeploymentError(Exception):
    """Base class for failures that abort a deployment run."""
    exit_code = 1


class PreconditionMissing(DeploymentError):
    """A required stack, file, tool, credential or container is missing."""
    pass


class DependencyNotReady(PreconditionMissing):
    """A prerequisite stack is absent or not in a ready state."""

    def __init__(self, stack_name: str, status: Optional[str] = None, hint: Optional[str] = None):
        self.stack_name = stack_name
        self.status = status
        if status is None:
            message = f"Stack '{stack_name}' not found."
        else:
            message = f"Stack '{stack_name}' is not in a ready state: {status}"
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class UnrecognizedStackState(DeploymentError):
    """A stack is in a status the deployer does not act on."""

    def __init__(self, stack_name: str, status: str):
        self.stack_name = stack_name
        self.status = status
        super().__init__(f"Stack '{stack_name}' is in status {status}; refusing to deploy")


class ExternalCallFailure(DeploymentError):
    """AWS or Docker reported a failure."""
    pass


class StackQueryError(ExternalCallFailure):
    """describe_stacks failed for a reason other than the stack not existing."""

    def __init__(self, stack_name: str, reason: str):
        self.stack_name = stack_name
        self.reason = reason
        super().__init__(f"Could not query stack '{stack_name}': {reason}")


class StackOperationFailed(ExternalCallFailure):
    """A create, update or delete ended in a failure state."""
    pass


class WaitTimeout(ExternalCallFailure):
    """A bounded wait ran out of time; the stack may still be transitioning."""
    pass


class WaitCancelled(ExternalCallFailure):
    """A wait was cancelled; the stack may still be transitioning."""
    pass


class ImagePublishError(ExternalCallFailure):
    """Registry login, image build, tag or push failed."""
    pass
