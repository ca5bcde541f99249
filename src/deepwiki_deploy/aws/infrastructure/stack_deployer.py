"""CloudFormation stack create / recreate / change-set update."""
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from deepwiki_deploy import console
from deepwiki_deploy.aws.infrastructure.dependency_gate import DependencyGate
from deepwiki_deploy.aws.infrastructure.stacks import StackReference
from deepwiki_deploy.aws.state.stack_status import StackState, StackStatusProber
from deepwiki_deploy.aws.utils.decorators import log_operation
from deepwiki_deploy.aws.utils.waiters import BoundedWaiter
from deepwiki_deploy.errors import (
    PreconditionMissing,
    StackOperationFailed,
    UnrecognizedStackState,
)
from deepwiki_deploy.prompts import Prompter
from deepwiki_deploy.settings import Settings

logger = logging.getLogger(__name__)

NO_CHANGES_MARKERS = (
    "didn't contain changes",
    "No updates are to be performed",
)


class DeployOutcome(str, Enum):
    """What a deploy call did to the stack."""
    CREATED = "created"
    RECREATED = "recreated"
    UPDATED = "updated"
    NO_CHANGES = "no_changes"
    DECLINED = "declined"


def default_change_set_name() -> str:
    return f"update-{datetime.now().strftime('%Y%m%d-%H%M%S')}"


class StackDeployer:
    """Brings one stack to its template's state.

    NOT_FOUND stacks are created, stacks left in ROLLBACK_COMPLETE or
    CREATE_FAILED are deleted and created again, ready stacks are updated
    through a reviewed change set, and anything else is refused.
    """

    def __init__(self, cloudformation_client: Any, settings: Settings, prompter: Prompter,
                 prober: Optional[StackStatusProber] = None,
                 gate: Optional[DependencyGate] = None,
                 cancel_event: Optional[threading.Event] = None,
                 change_set_namer: Callable[[], str] = default_change_set_name):
        self.cfn = cloudformation_client
        self.settings = settings
        self.prompter = prompter
        self.prober = prober or StackStatusProber(cloudformation_client)
        self.gate = gate or DependencyGate(self.prober)
        self.waiter = BoundedWaiter(
            cloudformation_client,
            delay=settings.wait_delay_seconds,
            timeout=settings.wait_timeout_seconds,
            cancel_event=cancel_event,
        )
        self.change_set_namer = change_set_namer

    def deploy(self, reference: StackReference, check_dependencies: bool = True) -> DeployOutcome:
        """Deploy ``reference`` according to its current stack state.

        Raises:
            DependencyNotReady: a prerequisite stack is not ready
            PreconditionMissing: the template file is missing
            UnrecognizedStackState: the stack is in a status we do not act on
            StackOperationFailed: CloudFormation reported a failure
        """
        console.step(f"DeepWiki {reference.label} Stack Deployment")
        console.line(f"Stack Name: {reference.name}")
        console.line(f"Template: {reference.template}")
        console.line(f"Project Name: {self.settings.project_name}")
        console.line(f"Region: {self.settings.aws_region}")
        console.line()

        if check_dependencies and reference.depends_on:
            console.info("Checking dependencies...")
            self.gate.require(reference.depends_on)
            console.line()

        template_body = self._read_template(reference)

        if reference.features:
            console.info(f"{reference.label} Configuration:")
            for feature in reference.features:
                console.check(feature)
            console.line()

        status = self.prober.probe(reference.name)

        if status.state == StackState.NOT_FOUND:
            console.success("Creating new stack...")
            self._create(reference, template_body)
            outcome = DeployOutcome.CREATED
        elif status.state == StackState.RECOVERABLE_FAILURE:
            console.warning(f"Stack {reference.name} exists with status: {status.raw_status}")
            self._delete(reference)
            self._create(reference, template_body)
            outcome = DeployOutcome.RECREATED
        elif status.state == StackState.READY:
            console.warning(f"Stack {reference.name} exists with status: {status.raw_status}. Updating...")
            outcome = self._update_with_change_set(reference, template_body)
        else:
            raise UnrecognizedStackState(reference.name, status.describe())

        if outcome != DeployOutcome.DECLINED:
            self.show_outputs(reference.name)
        return outcome

    def _read_template(self, reference: StackReference) -> str:
        if not reference.template.is_file():
            raise PreconditionMissing(f"Template file '{reference.template}' not found")
        return reference.template.read_text(encoding="utf-8")

    @log_operation("stack creation")
    def _create(self, reference: StackReference, template_body: str) -> None:
        kwargs: Dict[str, Any] = {
            'StackName': reference.name,
            'TemplateBody': template_body,
            'Parameters': reference.cfn_parameters(),
        }
        if reference.capabilities:
            kwargs['Capabilities'] = reference.capabilities

        logger.info(f"Creating stack {reference.name} with parameters {reference.display_parameters()}")
        self._call(f"create stack {reference.name}", self.cfn.create_stack, **kwargs)

        console.line("Waiting for stack creation to complete...")
        self.waiter.wait('stack_create_complete', f"creation of stack {reference.name}",
                         StackName=reference.name)
        console.check("Stack creation completed successfully!")

    @log_operation("failed stack deletion")
    def _delete(self, reference: StackReference) -> None:
        console.warning("Deleting failed stack first...")
        self._call(f"delete stack {reference.name}", self.cfn.delete_stack, StackName=reference.name)
        console.line("Waiting for stack deletion...")
        self.waiter.wait('stack_delete_complete', f"deletion of stack {reference.name}",
                         StackName=reference.name)
        console.check("Failed stack deleted successfully")

    @log_operation("change set update")
    def _update_with_change_set(self, reference: StackReference, template_body: str) -> DeployOutcome:
        change_set_name = self.change_set_namer()
        console.line(f"Creating change set: {change_set_name}")

        kwargs: Dict[str, Any] = {
            'StackName': reference.name,
            'ChangeSetName': change_set_name,
            'ChangeSetType': 'UPDATE',
            'TemplateBody': template_body,
            'Parameters': reference.cfn_parameters(),
        }
        if reference.capabilities:
            kwargs['Capabilities'] = reference.capabilities
        self._call(f"create change set {change_set_name}", self.cfn.create_change_set, **kwargs)

        console.line("Waiting for change set to be created...")
        try:
            self.waiter.wait('change_set_create_complete', f"change set {change_set_name}",
                             StackName=reference.name, ChangeSetName=change_set_name)
        except StackOperationFailed:
            reason = self._change_set_status_reason(reference.name, change_set_name)
            if any(marker in reason for marker in NO_CHANGES_MARKERS):
                console.info(f"No changes to apply to stack {reference.name}")
                self._delete_change_set(reference.name, change_set_name)
                return DeployOutcome.NO_CHANGES
            raise

        changes = self.describe_changes(reference.name, change_set_name)
        console.table(changes, ['Action', 'ResourceType', 'LogicalId', 'Replacement'],
                      title="Change Set Summary")
        console.line()

        if not self.prompter.confirm("Do you want to execute this change set?", default=False):
            console.line("Change set execution cancelled.")
            self._delete_change_set(reference.name, change_set_name)
            return DeployOutcome.DECLINED

        console.line("Executing change set...")
        self._call(f"execute change set {change_set_name}", self.cfn.execute_change_set,
                   StackName=reference.name, ChangeSetName=change_set_name)
        console.line("Waiting for stack update to complete...")
        self.waiter.wait('stack_update_complete', f"update of stack {reference.name}",
                         StackName=reference.name)
        console.check("Stack update completed successfully!")
        return DeployOutcome.UPDATED

    def describe_changes(self, stack_name: str, change_set_name: str) -> List[Dict[str, str]]:
        """Resource-level changes of a change set, following pagination."""
        rows = []
        kwargs = {'StackName': stack_name, 'ChangeSetName': change_set_name}
        while True:
            response = self._call(f"describe change set {change_set_name}",
                                  self.cfn.describe_change_set, **kwargs)
            for change in response.get('Changes', []):
                resource = change.get('ResourceChange', {})
                rows.append({
                    'Action': resource.get('Action', ''),
                    'ResourceType': resource.get('ResourceType', ''),
                    'LogicalId': resource.get('LogicalResourceId', ''),
                    'Replacement': resource.get('Replacement', ''),
                })
            next_token = response.get('NextToken')
            if not next_token:
                return rows
            kwargs['NextToken'] = next_token

    def _change_set_status_reason(self, stack_name: str, change_set_name: str) -> str:
        try:
            response = self.cfn.describe_change_set(StackName=stack_name, ChangeSetName=change_set_name)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not describe change set {change_set_name}: {e}")
            return ""
        return response.get('StatusReason', '') or ''

    def _delete_change_set(self, stack_name: str, change_set_name: str) -> None:
        self._call(f"delete change set {change_set_name}", self.cfn.delete_change_set,
                   StackName=stack_name, ChangeSetName=change_set_name)

    def show_outputs(self, stack_name: str) -> Dict[str, str]:
        """Print the stack outputs table and return the outputs."""
        outputs = self.prober.outputs(stack_name)
        console.line()
        console.table(
            [{'OutputKey': k, 'OutputValue': v} for k, v in outputs.items()],
            ['OutputKey', 'OutputValue'],
            title="Stack Outputs",
        )
        return outputs

    @staticmethod
    def _call(description: str, method: Callable[..., Any], **kwargs) -> Any:
        try:
            return method(**kwargs)
        except ClientError as e:
            message = e.response.get('Error', {}).get('Message', str(e))
            raise StackOperationFailed(f"Failed to {description}: {message}") from e
        except BotoCoreError as e:
            raise StackOperationFailed(f"Failed to {description}: {e}") from e
