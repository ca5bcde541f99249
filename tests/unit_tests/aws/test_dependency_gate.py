import pytest

from deepwiki_deploy.aws.infrastructure.dependency_gate import DependencyGate
from deepwiki_deploy.aws.state.stack_status import StackStatusProber
from deepwiki_deploy.errors import DependencyNotReady
from tests.consts import EFS_STACK, VPC_STACK
from tests.fixtures.fake_cloudformation import FakeCloudFormation


def gate_for(stacks, hints=None):
    cfn = FakeCloudFormation(stacks)
    return cfn, DependencyGate(StackStatusProber(cfn), hints=hints)


def test_all_ready_passes():
    cfn, gate = gate_for({
        VPC_STACK: {'StackStatus': 'CREATE_COMPLETE'},
        EFS_STACK: {'StackStatus': 'UPDATE_COMPLETE'},
    })

    gate.require([VPC_STACK, EFS_STACK])

    assert [call[1] for call in cfn.calls] == [VPC_STACK, EFS_STACK]


def test_missing_dependency_stops_at_first_failure():
    cfn, gate = gate_for({EFS_STACK: {'StackStatus': 'CREATE_COMPLETE'}},
                         hints={VPC_STACK: "Please deploy the VPC stack first."})

    with pytest.raises(DependencyNotReady) as exc_info:
        gate.require([VPC_STACK, EFS_STACK])

    assert exc_info.value.stack_name == VPC_STACK
    assert exc_info.value.status is None
    assert "not found" in str(exc_info.value)
    assert "Please deploy the VPC stack first." in str(exc_info.value)
    # EFS is never queried
    assert [call[1] for call in cfn.calls] == [VPC_STACK]


def test_dependency_in_failed_state_names_status():
    _, gate = gate_for({
        VPC_STACK: {'StackStatus': 'CREATE_COMPLETE'},
        EFS_STACK: {'StackStatus': 'ROLLBACK_COMPLETE'},
    })

    with pytest.raises(DependencyNotReady) as exc_info:
        gate.require([VPC_STACK, EFS_STACK])

    assert exc_info.value.stack_name == EFS_STACK
    assert "ROLLBACK_COMPLETE" in str(exc_info.value)
