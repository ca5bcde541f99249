import threading

import pytest
from botocore.exceptions import EndpointConnectionError

from deepwiki_deploy.aws.utils.waiters import MAX_ATTEMPTS_REASON, BoundedWaiter
from deepwiki_deploy.errors import StackOperationFailed, WaitCancelled, WaitTimeout
from tests.fixtures.fake_cloudformation import FakeCloudFormation

NOT_YET = MAX_ATTEMPTS_REASON


class SteppingClock:
    """Advances by ``step`` seconds on every read."""

    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


def attempts(cfn):
    return [call for call in cfn.calls if call[0] == 'wait']


def test_returns_after_terminal_success():
    cfn = FakeCloudFormation()
    cfn.waiter_script['stack_create_complete'] = [NOT_YET, NOT_YET, None]
    waiter = BoundedWaiter(cfn, delay=0.001, timeout=5)

    waiter.wait('stack_create_complete', "creation", StackName="s")

    assert len(attempts(cfn)) == 3
    assert attempts(cfn)[0][2] == {'StackName': "s"}


def test_terminal_failure_raises_operation_failed():
    cfn = FakeCloudFormation()
    cfn.waiter_script['stack_create_complete'] = [
        'Waiter encountered a terminal failure state: For expression "Stacks[].StackStatus" '
        'we matched expected path: "ROLLBACK_COMPLETE"'
    ]

    with pytest.raises(StackOperationFailed) as exc_info:
        BoundedWaiter(cfn, delay=0.001, timeout=5).wait('stack_create_complete', "creation of s",
                                                        StackName="s")

    assert "ROLLBACK_COMPLETE" in str(exc_info.value)


def test_times_out_when_never_terminal():
    cfn = FakeCloudFormation()
    cfn.waiter_script['stack_update_complete'] = [NOT_YET] * 100
    waiter = BoundedWaiter(cfn, delay=0.001, timeout=10, clock=SteppingClock(4))

    with pytest.raises(WaitTimeout) as exc_info:
        waiter.wait('stack_update_complete', "update of s", StackName="s")

    assert "mid-transition" in str(exc_info.value)
    assert len(attempts(cfn)) < 100


def test_cancel_event_stops_wait():
    cfn = FakeCloudFormation()
    cfn.waiter_script['stack_delete_complete'] = [NOT_YET] * 100
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(WaitCancelled):
        BoundedWaiter(cfn, delay=0.001, timeout=5, cancel_event=cancel).wait(
            'stack_delete_complete', "deletion of s", StackName="s")

    assert attempts(cfn) == []


def test_connection_error_during_poll_raises_operation_failed():
    cfn = FakeCloudFormation()

    class UnreachableWaiter:
        def wait(self, **kwargs):
            raise EndpointConnectionError(endpoint_url="https://cloudformation.ap-northeast-1.amazonaws.com")

    cfn.get_waiter = lambda name: UnreachableWaiter()

    with pytest.raises(StackOperationFailed) as exc_info:
        BoundedWaiter(cfn, delay=0.001, timeout=5).wait('stack_create_complete', "creation of s",
                                                        StackName="s")

    assert "creation of s failed" in str(exc_info.value)
