from deepwiki_deploy.aws.utils.aws_clients import AWSClientManager
from tests.consts import TEST_REGION


def test_clients_are_created_once_per_service(settings, mocked_aws):
    clients = AWSClientManager(settings)

    assert clients.cloudformation() is clients.cloudformation()
    assert clients.cloudformation() is not clients.ecr()
    assert clients.sts().meta.region_name == TEST_REGION


def test_endpoint_override_is_applied(settings, mocked_aws):
    clients = AWSClientManager(settings.model_copy(update={'aws_endpoint_url': "http://localhost:4566"}))

    assert clients.ecs().meta.endpoint_url == "http://localhost:4566"


def test_manager_only_hands_out_clients(settings):
    public = {name for name in vars(AWSClientManager) if not name.startswith('_')}

    assert public == {'session', 'get_client', 'cloudformation', 'ecr', 'ecs', 'efs', 'sts'}
