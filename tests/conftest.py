import base64
import os
import shutil
import subprocess
from unittest.mock import MagicMock

import pytest
from moto import mock_aws

from deepwiki_deploy.prompts import ScriptedPrompter
from deepwiki_deploy.settings import Settings
from tests.consts import (
    CACHE_ROOT,
    MINIMAL_TEMPLATE,
    TEST_OPENAI_KEY,
    TEST_PROJECT,
    TEST_REGION,
)
from tests.fixtures.fake_cloudformation import FakeCloudFormation


@pytest.fixture
def mocked_aws():
    """Point boto3 at moto with fake credentials."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = TEST_REGION

    with mock_aws():
        yield


@pytest.fixture
def template_dir(tmp_path):
    """CloudFormation directory with the three stack templates."""
    directory = tmp_path / "cloudformation"
    directory.mkdir()
    for name in ("01-vpc-network.yaml", "02-efs.yaml", "03-ecs.yaml"):
        (directory / name).write_text(MINIMAL_TEMPLATE)
    return directory


@pytest.fixture
def settings(template_dir, tmp_path):
    build_context = tmp_path / "app"
    build_context.mkdir()
    (build_context / "Dockerfile").write_text("FROM python:3.11-slim\n")
    return Settings(
        project_name=TEST_PROJECT,
        aws_region=TEST_REGION,
        cloudformation_dir=template_dir,
        docker_context=build_context,
        wait_delay_seconds=0.01,
        wait_timeout_seconds=5,
        openai_api_key=TEST_OPENAI_KEY,
        allowed_cidr="10.0.0.0/8",
        cache_root=CACHE_ROOT,
    )


@pytest.fixture
def prompter():
    return ScriptedPrompter(confirm_answer=True)


@pytest.fixture
def fake_cfn():
    return FakeCloudFormation()


class FakeClientManager:
    """Hands out the fake CloudFormation client and MagicMocks for the rest."""

    def __init__(self, cfn):
        self._cfn = cfn
        self._ecr = MagicMock(name="ecr")
        self._ecs = MagicMock(name="ecs")
        self._efs = MagicMock(name="efs")
        self._sts = MagicMock(name="sts")
        self._sts.get_caller_identity.return_value = {'Account': "123456789012"}
        self._ecs.describe_services.return_value = {'services': []}
        self._efs.describe_file_systems.return_value = {'FileSystems': []}
        self._ecr.get_authorization_token.return_value = {'authorizationData': [
            {'authorizationToken': base64.b64encode(b"AWS:ecr-password").decode()}
        ]}
        self._ecr.describe_images.return_value = {'imageDetails': []}

    def cloudformation(self):
        return self._cfn

    def ecr(self):
        return self._ecr

    def ecs(self):
        return self._ecs

    def efs(self):
        return self._efs

    def sts(self):
        return self._sts


@pytest.fixture
def fake_clients(fake_cfn):
    return FakeClientManager(fake_cfn)


@pytest.fixture
def docker_cli(monkeypatch):
    """Stand-in for the docker CLI; records every command and succeeds."""
    commands = []

    def run(command, **kwargs):
        commands.append(list(command))
        return subprocess.CompletedProcess(command, 0, "", "")

    monkeypatch.setattr(shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(subprocess, "run", run)
    return commands
