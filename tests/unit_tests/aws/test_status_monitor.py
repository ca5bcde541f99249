from unittest.mock import MagicMock

import pytest

from deepwiki_deploy.aws.monitoring.status_monitor import StatusMonitor
from deepwiki_deploy.aws.state.stack_status import StackStatusProber
from tests.consts import EFS_STACK
from tests.fixtures.fake_cloudformation import FakeCloudFormation, client_error

FILE_SYSTEM_ID = "fs-0123456789abcdef0"


@pytest.fixture
def efs_client():
    client = MagicMock(name="efs")
    client.describe_file_systems.return_value = {'FileSystems': []}
    return client


@pytest.fixture
def monitor(settings, efs_client):
    cfn = FakeCloudFormation({
        EFS_STACK: {'StackStatus': 'CREATE_COMPLETE', 'Outputs': {'EFSFileSystemId': FILE_SYSTEM_ID}},
    })
    return StatusMonitor(settings, StackStatusProber(cfn), MagicMock(name="ecs"), efs_client)


def test_available_efs_is_ready(monitor, efs_client, capsys):
    efs_client.describe_file_systems.return_value = {
        'FileSystems': [{'FileSystemId': FILE_SYSTEM_ID, 'LifeCycleState': 'available'}]
    }

    monitor.show_efs_details()

    out = capsys.readouterr().out
    assert "EFS is ready for use" in out
    assert "still being created" not in out


def test_creating_efs_reports_state(monitor, efs_client, capsys):
    efs_client.describe_file_systems.return_value = {
        'FileSystems': [{'FileSystemId': FILE_SYSTEM_ID, 'LifeCycleState': 'creating'}]
    }

    monitor.show_efs_details()

    assert "EFS is still being created. State: creating" in capsys.readouterr().out


def test_unknown_file_system_is_not_reported_as_creating(monitor, capsys):
    monitor.show_efs_details()

    out = capsys.readouterr().out
    assert f"Could not read EFS state for {FILE_SYSTEM_ID}" in out
    assert "still being created" not in out
    assert "State: None" not in out


def test_describe_failure_is_not_reported_as_creating(monitor, efs_client, capsys):
    efs_client.describe_file_systems.side_effect = client_error(
        'AccessDeniedException', "not authorized", 'DescribeFileSystems')

    assert monitor.check_efs(FILE_SYSTEM_ID) is None
    monitor.show_efs_details()

    assert "Could not read EFS state" in capsys.readouterr().out


def test_missing_output_is_a_warning(settings, efs_client, capsys):
    monitor = StatusMonitor(settings, StackStatusProber(FakeCloudFormation({
        EFS_STACK: {'StackStatus': 'CREATE_COMPLETE'},
    })), MagicMock(name="ecs"), efs_client)

    monitor.show_efs_details()

    assert "EFSFileSystemId output not found" in capsys.readouterr().out
    efs_client.describe_file_systems.assert_not_called()
