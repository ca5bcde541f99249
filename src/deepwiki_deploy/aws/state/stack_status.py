"""
CloudFormation stack status probing.

Collapses the provider's stack status vocabulary into the few states the
deployer acts on, and reads stack outputs.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from deepwiki_deploy.errors import StackQueryError

logger = logging.getLogger(__name__)

READY_STATUSES = frozenset({"CREATE_COMPLETE", "UPDATE_COMPLETE"})
RECOVERABLE_FAILURE_STATUSES = frozenset({"ROLLBACK_COMPLETE", "CREATE_FAILED"})


class StackState(str, Enum):
    """Stack states the deployer distinguishes."""
    NOT_FOUND = "not_found"
    READY = "ready"
    RECOVERABLE_FAILURE = "recoverable_failure"
    OTHER = "other"


def classify_status(status: Optional[str]) -> StackState:
    """Map a provider status string to a StackState.

    Anything outside the ready and recoverable-failure sets is OTHER,
    including in-progress and rollback-in-progress statuses.
    """
    if status is None:
        return StackState.NOT_FOUND
    if status in READY_STATUSES:
        return StackState.READY
    if status in RECOVERABLE_FAILURE_STATUSES:
        return StackState.RECOVERABLE_FAILURE
    return StackState.OTHER


@dataclass(frozen=True)
class StackStatus:
    """Result of probing one stack."""
    stack_name: str
    state: StackState
    raw_status: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.state != StackState.NOT_FOUND

    @property
    def in_progress(self) -> bool:
        return bool(self.raw_status) and self.raw_status.endswith("_IN_PROGRESS")

    def describe(self) -> str:
        """Status as shown to the operator."""
        if not self.exists:
            return "not found"
        if self.in_progress:
            return f"{self.raw_status} (in progress)"
        return self.raw_status


def _is_missing_stack_error(error: ClientError) -> bool:
    details = error.response.get('Error', {})
    return (details.get('Code') == 'ValidationError'
            and 'does not exist' in details.get('Message', ''))


class StackStatusProber:
    """Queries CloudFormation for stack existence, status and outputs."""

    def __init__(self, cloudformation_client: Any):
        self.cfn = cloudformation_client

    def describe(self, stack_name: str) -> Optional[Dict[str, Any]]:
        """Return the stack description, or None if the stack does not exist.

        Raises:
            StackQueryError: the query failed for any other reason
        """
        try:
            response = self.cfn.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if _is_missing_stack_error(e):
                logger.debug(f"Stack {stack_name} does not exist")
                return None
            raise StackQueryError(stack_name, e.response.get('Error', {}).get('Message', str(e))) from e
        except BotoCoreError as e:
            raise StackQueryError(stack_name, str(e)) from e

        stacks = response.get('Stacks', [])
        if not stacks:
            return None
        return stacks[0]

    def probe(self, stack_name: str) -> StackStatus:
        """Classify the current state of ``stack_name``."""
        stack = self.describe(stack_name)
        raw_status = stack.get('StackStatus') if stack else None
        status = StackStatus(stack_name, classify_status(raw_status), raw_status)
        logger.info(f"Stack {stack_name}: {status.describe()} -> {status.state.value}")
        return status

    def outputs(self, stack_name: str) -> Dict[str, str]:
        """Stack outputs as OutputKey -> OutputValue (empty if the stack is missing)."""
        stack = self.describe(stack_name)
        if not stack:
            return {}
        return {
            output['OutputKey']: output['OutputValue']
            for output in stack.get('Outputs', [])
        }

    def output(self, stack_name: str, key: str) -> Optional[str]:
        """Single stack output value, or None."""
        return self.outputs(stack_name).get(key) or None
