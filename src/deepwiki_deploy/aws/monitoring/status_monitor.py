"""
Deployment status reporting.

Reads the state of the deployed EFS file system and ECS service and prints
the information an operator needs after a deployment step.
"""
import logging
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from deepwiki_deploy import console
from deepwiki_deploy.aws.state.stack_status import StackStatusProber
from deepwiki_deploy.settings import Settings

logger = logging.getLogger(__name__)


class StatusMonitor:
    """Report health and status of the deployed stacks' resources."""

    def __init__(self, settings: Settings, prober: StackStatusProber, ecs_client: Any, efs_client: Any):
        self.settings = settings
        self.prober = prober
        self.ecs_client = ecs_client
        self.efs_client = efs_client

    def check_ecs_service(self, cluster_name: str, service_name: str) -> Dict[str, Any]:
        """
        Check ECS service health.

        Returns:
            Dict with status, running/desired counts, task definition and a
            healthy flag (ACTIVE with every desired task running)
        """
        try:
            response = self.ecs_client.describe_services(
                cluster=cluster_name,
                services=[service_name]
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ClusterNotFoundException':
                return {'status': 'error', 'error': f"ECS cluster '{cluster_name}' not found", 'healthy': False}
            return {'status': 'error', 'error': str(e), 'healthy': False}
        except BotoCoreError as e:
            return {'status': 'error', 'error': str(e), 'healthy': False}

        services = response.get('services', [])
        if not services:
            return {'status': 'error', 'error': f"ECS service '{service_name}' not found", 'healthy': False}

        service = services[0]
        running_count = service.get('runningCount', 0)
        desired_count = service.get('desiredCount', 0)
        status = service.get('status', 'UNKNOWN')
        return {
            'service_name': service.get('serviceName', service_name),
            'status': status,
            'running': running_count,
            'desired': desired_count,
            'task_definition': service.get('taskDefinition', ''),
            'healthy': running_count == desired_count and status == 'ACTIVE',
        }

    def check_efs(self, file_system_id: str) -> Optional[str]:
        """Lifecycle state of an EFS file system, or None if it cannot be read."""
        try:
            response = self.efs_client.describe_file_systems(FileSystemId=file_system_id)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not describe EFS {file_system_id}: {e}")
            return None
        file_systems = response.get('FileSystems', [])
        if not file_systems:
            return None
        return file_systems[0].get('LifeCycleState')

    def show_efs_details(self) -> None:
        """Print the EFS file system id, state and access points."""
        file_system_id = self.prober.output(self.settings.efs_stack_name, 'EFSFileSystemId')
        console.line()
        console.step("EFS Details")
        if not file_system_id:
            console.warning("EFSFileSystemId output not found")
            return

        console.line(f"File System ID: {file_system_id}")
        state = self.check_efs(file_system_id)
        console.line(f"EFS State: {state or 'unknown'}")
        if state == 'available':
            console.check("EFS is ready for use")
        elif state is None:
            console.warning(f"Could not read EFS state for {file_system_id}")
        else:
            console.warning(f"EFS is still being created. State: {state}")

        console.line()
        console.line("Mount command for testing:")
        console.line(f"  sudo mount -t efs -o tls {file_system_id}:/ /mnt/efs")
        console.line()
        console.info("Access points:")
        for path in ("/deepwiki-data", "/repos", "/databases", "/wikicache"):
            console.line(f"  - {path}")

    def show_ecr_instructions(self) -> None:
        """Print the repository URI and the manual build/push commands."""
        ecr_uri = self.prober.output(self.settings.ecs_stack_name, 'ECRRepositoryURI')
        if not ecr_uri:
            return
        project = self.settings.project_name
        region = self.settings.aws_region
        console.line()
        console.step("ECR Repository")
        console.line(f"Repository URI: {ecr_uri}")
        console.line()
        console.line("Docker commands to build and push your image:")
        console.line(f"  docker build -t {project} .")
        console.line(f"  docker tag {project}:latest {ecr_uri}:latest")
        console.line(f"  aws ecr get-login-password --region {region} | "
                     f"docker login --username AWS --password-stdin {ecr_uri}")
        console.line(f"  docker push {ecr_uri}:latest")

    def show_ecs_service(self) -> Optional[Dict[str, Any]]:
        """Print the ECS service status from the ECS stack outputs."""
        outputs = self.prober.outputs(self.settings.ecs_stack_name)
        cluster_name = outputs.get('ECSClusterName')
        service_name = outputs.get('ECSServiceName')
        if not cluster_name or not service_name:
            return None

        console.line()
        console.step("ECS Service Status")
        console.line(f"Cluster: {cluster_name}")
        console.line(f"Service: {service_name}")
        health = self.check_ecs_service(cluster_name, service_name)
        if health['status'] == 'error':
            console.warning(health['error'])
            return health

        console.table(
            [{
                'ServiceName': health['service_name'],
                'Status': health['status'],
                'RunningCount': health['running'],
                'DesiredCount': health['desired'],
                'TaskDefinition': health['task_definition'],
            }],
            ['ServiceName', 'Status', 'RunningCount', 'DesiredCount', 'TaskDefinition'],
        )
        if health['healthy']:
            console.check("ECS Service is running successfully")
        else:
            console.warning("ECS Service is still starting up")
        return health

    def show_deployment_info(self) -> None:
        """Print the ECS stack outputs, service status and follow-up commands."""
        console.step("Deployment Information")
        console.info("Retrieving deployment information...")

        ecs_stack = self.settings.ecs_stack_name
        outputs = self.prober.outputs(ecs_stack)
        if not outputs:
            console.warning(f"No outputs found for stack {ecs_stack}")
            return

        console.table(
            [{'OutputKey': k, 'OutputValue': v} for k, v in outputs.items()],
            ['OutputKey', 'OutputValue'],
            title="ECS Service Information",
        )
        self.show_ecs_service()

        console.line()
        console.success("Deployment completed successfully!")
        console.line()
        console.step("Next Steps")
        console.line("1. Monitor your ECS service in the AWS Console")
        console.line("2. Check CloudWatch logs for application startup")
        console.line("3. Configure your domain name if needed")
        console.line("4. Set up monitoring and alerts")

        cluster_name = outputs.get('ECSClusterName')
        service_name = outputs.get('ECSServiceName')
        if cluster_name and service_name:
            region = self.settings.aws_region
            console.line()
            console.step("Useful Commands")
            console.line("• Check service status:")
            console.line(f"  aws ecs describe-services --cluster {cluster_name} --services {service_name} --region {region}")
            console.line("• View service logs:")
            console.line(f"  aws logs tail /ecs/{self.settings.project_name} --follow --region {region}")
            console.line("• Force new deployment:")
            console.line(f"  aws ecs update-service --cluster {cluster_name} --service {service_name} "
                         f"--force-new-deployment --region {region}")
