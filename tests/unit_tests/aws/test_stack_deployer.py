import pytest
from botocore.exceptions import EndpointConnectionError

from deepwiki_deploy.aws.infrastructure.stack_deployer import DeployOutcome, StackDeployer
from deepwiki_deploy.aws.infrastructure.stacks import ecs_stack, efs_stack, vpc_stack
from deepwiki_deploy.errors import (
    DependencyNotReady,
    PreconditionMissing,
    StackOperationFailed,
    UnrecognizedStackState,
)
from deepwiki_deploy.prompts import ScriptedPrompter
from tests.consts import ECS_STACK, EFS_STACK, VPC_STACK
from tests.fixtures.fake_cloudformation import FakeCloudFormation

CHANGE_SET = "update-20240101-000000"

READY_INFRA = {
    VPC_STACK: {'StackStatus': 'CREATE_COMPLETE'},
    EFS_STACK: {'StackStatus': 'CREATE_COMPLETE'},
}


def make_deployer(cfn, settings, prompter=None):
    return StackDeployer(cfn, settings, prompter or ScriptedPrompter(),
                         change_set_namer=lambda: CHANGE_SET)


def test_creates_missing_stack(settings):
    cfn = FakeCloudFormation()

    outcome = make_deployer(cfn, settings).deploy(vpc_stack(settings))

    assert outcome == DeployOutcome.CREATED
    assert cfn.mutations() == [('create_stack', VPC_STACK)]
    create = cfn.calls_named('create_stack')[0]
    assert create['Capabilities'] == ['CAPABILITY_IAM']
    assert create['Parameters'] == [{'ParameterKey': 'ProjectName', 'ParameterValue': 'deepwiki'}]
    assert cfn.stacks[VPC_STACK]['StackStatus'] == 'CREATE_COMPLETE'


def test_create_without_capabilities_omits_them(settings):
    cfn = FakeCloudFormation({VPC_STACK: {'StackStatus': 'CREATE_COMPLETE'}})

    make_deployer(cfn, settings).deploy(efs_stack(settings))

    assert 'Capabilities' not in cfn.calls_named('create_stack')[0]


@pytest.mark.parametrize("failed_status", ["ROLLBACK_COMPLETE", "CREATE_FAILED"])
def test_recreates_stack_in_recoverable_failure(settings, failed_status):
    cfn = FakeCloudFormation({**READY_INFRA, ECS_STACK: {'StackStatus': failed_status}})

    outcome = make_deployer(cfn, settings).deploy(ecs_stack(settings, ScriptedPrompter()))

    assert outcome == DeployOutcome.RECREATED
    assert cfn.mutations() == [('delete_stack', ECS_STACK), ('create_stack', ECS_STACK)]
    waits = [call[1] for call in cfn.calls if call[0] == 'wait']
    assert waits == ['stack_delete_complete', 'stack_create_complete']


def test_update_executes_confirmed_change_set(settings):
    cfn = FakeCloudFormation(READY_INFRA)
    cfn.change_set_pages = [{'Changes': [{'ResourceChange': {
        'Action': 'Modify', 'ResourceType': 'AWS::EFS::FileSystem',
        'LogicalResourceId': 'FileSystem', 'Replacement': 'False'}}]}]

    outcome = make_deployer(cfn, settings).deploy(efs_stack(settings))

    assert outcome == DeployOutcome.UPDATED
    assert cfn.mutations() == [('create_change_set', EFS_STACK), ('execute_change_set', EFS_STACK)]
    change_set = cfn.calls_named('create_change_set')[0]
    assert change_set['ChangeSetType'] == 'UPDATE'
    assert change_set['ChangeSetName'] == CHANGE_SET
    assert cfn.stacks[EFS_STACK]['StackStatus'] == 'UPDATE_COMPLETE'


def test_declined_change_set_is_deleted_and_stack_untouched(settings):
    cfn = FakeCloudFormation(READY_INFRA)
    prompter = ScriptedPrompter(confirm_answer=False)

    outcome = make_deployer(cfn, settings, prompter).deploy(efs_stack(settings))

    assert outcome == DeployOutcome.DECLINED
    assert cfn.mutations() == [('create_change_set', EFS_STACK), ('delete_change_set', EFS_STACK)]
    assert cfn.stacks[EFS_STACK]['StackStatus'] == 'CREATE_COMPLETE'
    assert "Do you want to execute this change set?" in prompter.asked


def test_change_set_without_changes_reports_no_changes(settings):
    cfn = FakeCloudFormation(READY_INFRA)
    cfn.waiter_script['change_set_create_complete'] = [
        'Waiter encountered a terminal failure state: Status FAILED'
    ]
    cfn.change_set_reason = ("The submitted information didn't contain changes. "
                             "Submit different information to create a change set.")
    prompter = ScriptedPrompter()

    outcome = make_deployer(cfn, settings, prompter).deploy(vpc_stack(settings))

    assert outcome == DeployOutcome.NO_CHANGES
    assert cfn.mutations() == [('create_change_set', VPC_STACK), ('delete_change_set', VPC_STACK)]
    assert prompter.asked == []


def test_failed_change_set_with_other_reason_raises(settings):
    cfn = FakeCloudFormation(READY_INFRA)
    cfn.waiter_script['change_set_create_complete'] = ['Waiter encountered a terminal failure state']
    cfn.change_set_reason = "Parameter validation failed"

    with pytest.raises(StackOperationFailed):
        make_deployer(cfn, settings).deploy(vpc_stack(settings))


def test_change_set_summary_follows_pagination(settings):
    cfn = FakeCloudFormation(READY_INFRA)
    page = {'Changes': [{'ResourceChange': {'Action': 'Add', 'ResourceType': 'AWS::EC2::Subnet',
                                            'LogicalResourceId': 'Subnet'}}]}
    cfn.change_set_pages = [page, page, page]

    rows = make_deployer(cfn, settings).describe_changes(VPC_STACK, CHANGE_SET)

    assert len(rows) == 3
    assert rows[0]['LogicalId'] == 'Subnet'


@pytest.mark.parametrize("status", ["UPDATE_IN_PROGRESS", "UPDATE_ROLLBACK_COMPLETE", "DELETE_FAILED"])
def test_unrecognized_status_fails_without_mutation(settings, status):
    cfn = FakeCloudFormation({VPC_STACK: {'StackStatus': status}})

    with pytest.raises(UnrecognizedStackState) as exc_info:
        make_deployer(cfn, settings).deploy(vpc_stack(settings))

    assert status in str(exc_info.value)
    assert cfn.mutations() == []


def test_missing_dependency_aborts_before_any_operation(settings):
    cfn = FakeCloudFormation()

    with pytest.raises(DependencyNotReady):
        make_deployer(cfn, settings).deploy(efs_stack(settings))

    assert cfn.mutations() == []


def test_missing_template_is_precondition(settings):
    cfn = FakeCloudFormation()
    settings.template_path(settings.vpc_template).unlink()

    with pytest.raises(PreconditionMissing):
        make_deployer(cfn, settings).deploy(vpc_stack(settings))

    assert cfn.mutations() == []


def test_create_failure_surfaces_as_operation_failed(settings):
    cfn = FakeCloudFormation()
    cfn.waiter_script['stack_create_complete'] = [
        'Waiter encountered a terminal failure state: ROLLBACK_COMPLETE'
    ]

    with pytest.raises(StackOperationFailed):
        make_deployer(cfn, settings).deploy(vpc_stack(settings))


def test_connection_error_becomes_operation_failed(settings):
    cfn = FakeCloudFormation()

    def unreachable(**kwargs):
        raise EndpointConnectionError(endpoint_url="https://cloudformation.ap-northeast-1.amazonaws.com")

    cfn.create_stack = unreachable

    with pytest.raises(StackOperationFailed) as exc_info:
        make_deployer(cfn, settings).deploy(vpc_stack(settings))

    assert "create stack" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, EndpointConnectionError)
