"""Docker image build and push to the ECR repository published by the ECS stack."""
import base64
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from deepwiki_deploy import console
from deepwiki_deploy.aws.state.stack_status import StackStatusProber
from deepwiki_deploy.aws.utils.decorators import log_operation
from deepwiki_deploy.errors import (
    DependencyNotReady,
    ExternalCallFailure,
    ImagePublishError,
    PreconditionMissing,
)
from deepwiki_deploy.prompts import Prompter
from deepwiki_deploy.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Outcome of an image publish."""
    image_uri: str
    redeployed: bool = False
    local_images_removed: bool = False


class ImagePublisher:
    """Builds the DeepWiki image and pushes it to ECR.

    The repository URI, cluster and service names are read from the ECS
    stack outputs (ECRRepositoryURI, ECSClusterName, ECSServiceName).
    """

    def __init__(self, settings: Settings, prober: StackStatusProber, ecr_client: Any,
                 ecs_client: Any, prompter: Prompter, hint: Optional[str] = None):
        self.settings = settings
        self.prober = prober
        self.ecr = ecr_client
        self.ecs = ecs_client
        self.prompter = prompter
        self.hint = hint
        self.local_image = f"{settings.project_name}:{settings.image_tag}"

    @log_operation("image build and push")
    def publish(self) -> PublishResult:
        """Build, tag and push the image; optionally roll the ECS service.

        Raises:
            PreconditionMissing: ECS stack, repository output, Dockerfile or docker CLI missing
            ImagePublishError: login, build, tag or push failed
        """
        console.step("DeepWiki Docker Image Build and Push")
        console.line(f"Project: {self.settings.project_name}")
        console.line(f"Region: {self.settings.aws_region}")
        console.line(f"Image Tag: {self.settings.image_tag}")
        console.line()

        outputs = self._ecs_stack_outputs()
        ecr_uri = outputs.get('ECRRepositoryURI')
        if not ecr_uri:
            raise PreconditionMissing("Could not retrieve ECR repository URI from the ECS stack outputs")
        console.check(f"ECR Repository URI: {ecr_uri}")
        console.line()

        self._check_build_context()
        self._check_docker()

        remote_image = f"{ecr_uri}:{self.settings.image_tag}"
        self.login(ecr_uri)
        self.build()
        self.tag_and_push(remote_image)
        self.show_repository_details(ecr_uri)

        result = PublishResult(image_uri=remote_image)
        result.redeployed = self.offer_redeploy(outputs)

        console.line()
        console.step("Docker Build and Push Complete")
        console.check("Docker image built successfully")
        console.check(f"Image pushed to ECR: {remote_image}")
        console.check("Ready for ECS deployment")

        result.local_images_removed = self.offer_local_cleanup(remote_image)
        return result

    def _ecs_stack_outputs(self) -> Dict[str, str]:
        console.info("Checking ECS stack...")
        stack_name = self.settings.ecs_stack_name
        status = self.prober.probe(stack_name)
        if not status.exists:
            raise DependencyNotReady(stack_name, None, self.hint)
        return self.prober.outputs(stack_name)

    def _check_build_context(self) -> None:
        dockerfile = self.settings.docker_context / "Dockerfile"
        if not dockerfile.is_file():
            raise PreconditionMissing(f"Dockerfile not found in build context: {self.settings.docker_context}")
        console.info(f"Build context: {self.settings.docker_context}")

    def _check_docker(self) -> None:
        console.info("Checking Docker...")
        if shutil.which("docker") is None:
            raise PreconditionMissing("Docker is not installed or not on PATH")
        self._run(["docker", "--version"], "run docker", capture=True)
        console.check("Docker is available")

    def login(self, ecr_uri: str) -> None:
        """Log the docker CLI in to the registry hosting ``ecr_uri``."""
        console.info("Logging in to ECR...")
        try:
            token_response = self.ecr.get_authorization_token()
        except (ClientError, BotoCoreError) as e:
            raise ImagePublishError(f"Failed to get ECR authorization token: {e}") from e

        token_data = token_response['authorizationData'][0]
        token = base64.b64decode(token_data['authorizationToken']).decode('utf-8')
        username, password = token.split(':', 1)
        registry = ecr_uri.split('/', 1)[0]

        self._run(
            ["docker", "login", "--username", username, "--password-stdin", registry],
            "login to ECR",
            input_text=password,
            capture=True,
        )
        console.check("Successfully logged in to ECR")
        console.line()

    def build(self) -> None:
        console.info("Building Docker image...")
        console.line("This may take several minutes...")
        self._run(
            ["docker", "buildx", "build", "--platform", self.settings.image_platform,
             "-t", self.local_image, str(self.settings.docker_context)],
            "build Docker image",
        )
        console.check("Docker image built successfully")

        details = self._run(
            ["docker", "images", self.local_image, "--format",
             "table {{.Repository}}\t{{.Tag}}\t{{.Size}}\t{{.CreatedAt}}"],
            "list local image",
            capture=True,
        )
        console.info("Image Details:")
        console.line(details.stdout.rstrip())
        console.line()

    def tag_and_push(self, remote_image: str) -> None:
        console.info("Tagging image for ECR...")
        self._run(["docker", "tag", self.local_image, remote_image], "tag image")
        console.check("Image tagged successfully")

        console.info("Pushing image to ECR...")
        console.line("This may take several minutes depending on image size and network speed...")
        self._run(["docker", "push", remote_image], "push image to ECR")
        console.check("Image pushed successfully to ECR")
        console.line()
        logger.info(f"Pushed image to ECR: {remote_image}")

    def show_repository_details(self, ecr_uri: str) -> None:
        """Print the most recently pushed image of the repository."""
        repository_name = ecr_uri.split('/', 1)[-1]
        try:
            response = self.ecr.describe_images(repositoryName=repository_name)
        except (ClientError, BotoCoreError) as e:
            console.warning(f"Could not describe images in {repository_name}: {e}")
            return

        images = response.get('imageDetails', [])
        if not images:
            return
        latest = max(images, key=lambda image: str(image.get('imagePushedAt', '')))
        console.table(
            [{
                'ImageTags': ", ".join(latest.get('imageTags', [])),
                'ImageSizeInBytes': latest.get('imageSizeInBytes', ''),
                'ImagePushedAt': latest.get('imagePushedAt', ''),
            }],
            ['ImageTags', 'ImageSizeInBytes', 'ImagePushedAt'],
            title="ECR Repository Details",
        )

    def offer_redeploy(self, outputs: Dict[str, str]) -> bool:
        """Ask whether to force a new deployment of the ECS service."""
        cluster_name = outputs.get('ECSClusterName')
        service_name = outputs.get('ECSServiceName')
        if not cluster_name or not service_name:
            return False

        console.line()
        console.info("Checking ECS service...")
        console.line(f"Cluster: {cluster_name}")
        console.line(f"Service: {service_name}")
        try:
            services = self.ecs.describe_services(cluster=cluster_name, services=[service_name])
            current = services.get('services', [{}])
            task_definition = current[0].get('taskDefinition', 'unknown') if current else 'unknown'
            console.line(f"Current Task Definition: {task_definition}")
        except (ClientError, BotoCoreError) as e:
            console.warning(f"Could not describe service {service_name}: {e}")

        if not self.prompter.confirm("Would you like to force a new deployment now?", default=False):
            console.line("To roll the service later:")
            console.line(f"  aws ecs update-service --cluster {cluster_name} --service {service_name} "
                         f"--force-new-deployment --region {self.settings.aws_region}")
            return False

        console.info("Forcing new deployment...")
        self.force_new_deployment(cluster_name, service_name)
        console.check("New deployment initiated")
        console.line("You can monitor the deployment progress in the AWS Console or using:")
        console.line(f"aws ecs describe-services --cluster {cluster_name} --services {service_name} "
                     f"--region {self.settings.aws_region}")
        return True

    def force_new_deployment(self, cluster_name: str, service_name: str) -> Dict[str, Any]:
        """Restart the service's tasks on the freshly pushed image."""
        try:
            response = self.ecs.update_service(
                cluster=cluster_name,
                service=service_name,
                forceNewDeployment=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallFailure(f"Failed to force new deployment of {service_name}: {e}") from e
        logger.info(f"Forced new deployment of {cluster_name}/{service_name}")
        return response

    def offer_local_cleanup(self, remote_image: str) -> bool:
        console.line()
        if not self.prompter.confirm("Would you like to remove the local Docker images to save space?",
                                     default=False):
            return False

        console.info("Cleaning up local images...")
        completed = subprocess.run(
            ["docker", "rmi", self.local_image, remote_image],
            capture_output=True,
            text=True,
        )
        if completed.returncode != 0:
            console.warning(f"Could not remove local images: {completed.stderr.strip()}")
            return False
        console.check("Local images cleaned up")
        return True

    @staticmethod
    def _run(command: List[str], description: str, input_text: Optional[str] = None,
             capture: bool = False) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(command[:3])} ...")
        try:
            return subprocess.run(
                command,
                input=input_text,
                capture_output=capture,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise PreconditionMissing("Docker is not installed or not on PATH") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() if capture else ""
            message = f"Failed to {description}"
            if detail:
                message = f"{message}: {detail}"
            raise ImagePublishError(message) from e
