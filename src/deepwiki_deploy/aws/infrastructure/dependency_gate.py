"""Prerequisite stack checks."""
import logging
from typing import Dict, Iterable, Optional

from deepwiki_deploy import console
from deepwiki_deploy.aws.state.stack_status import StackState, StackStatusProber
from deepwiki_deploy.errors import DependencyNotReady

logger = logging.getLogger(__name__)


class DependencyGate:
    """Refuses to continue unless every prerequisite stack is ready.

    Args:
        prober: Stack status prober
        hints: Optional remediation text per stack name, appended to failures
    """

    def __init__(self, prober: StackStatusProber, hints: Optional[Dict[str, str]] = None):
        self.prober = prober
        self.hints = hints or {}

    def require(self, stack_names: Iterable[str]) -> None:
        """Check prerequisites in order, stopping at the first one not ready.

        Raises:
            DependencyNotReady: naming the stack and its actual status
        """
        for stack_name in stack_names:
            status = self.prober.probe(stack_name)
            if status.state == StackState.READY:
                console.check(f"{stack_name} stack dependency satisfied ({status.raw_status})")
                continue

            hint = self.hints.get(stack_name)
            logger.error(f"Dependency {stack_name} not ready: {status.describe()}")
            if status.exists:
                raise DependencyNotReady(stack_name, status.describe(), hint)
            raise DependencyNotReady(stack_name, None, hint)
