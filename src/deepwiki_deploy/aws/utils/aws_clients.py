"""AWS client management."""
import logging
from typing import Any, Dict

import boto3

from deepwiki_deploy.settings import Settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Creates and caches boto3 clients for one set of settings."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.region = settings.aws_region
        self.endpoint_url = settings.aws_endpoint_url
        self._clients: Dict[str, Any] = {}
        self._session = None

        logger.info("Initializing AWSClientManager")
        logger.info(f"  Region: {self.region}")
        logger.info(f"  Profile: {settings.aws_profile}")
        logger.info(f"  Endpoint: {self.endpoint_url}")

    @property
    def session(self) -> boto3.Session:
        """Session bound to the configured profile (SSO or named credentials)."""
        if self._session is None:
            if self.settings.aws_profile:
                self._session = boto3.Session(profile_name=self.settings.aws_profile)
            else:
                self._session = boto3.Session()
        return self._session

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        client_kwargs = {
            'region_name': self.region
        }
        if self.endpoint_url:
            client_kwargs['endpoint_url'] = self.endpoint_url

        client = self.session.client(service_name, **client_kwargs)
        self._clients[service_name] = client
        logger.debug(f"Created {service_name} client")
        return client

    # Convenience accessors for the services this tooling talks to

    def cloudformation(self):
        """Get the CloudFormation client."""
        return self.get_client('cloudformation')

    def ecr(self):
        """Get the ECR client."""
        return self.get_client('ecr')

    def ecs(self):
        """Get the ECS client."""
        return self.get_client('ecs')

    def efs(self):
        """Get the EFS client."""
        return self.get_client('efs')

    def sts(self):
        """Get the STS client."""
        return self.get_client('sts')
