"""AWS deployment orchestration for DeepWiki: VPC, EFS, ECS and the container image."""
import logging
import shutil
import subprocess
import threading
from enum import Enum
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from deepwiki_deploy import console
from deepwiki_deploy.aws.infrastructure.dependency_gate import DependencyGate
from deepwiki_deploy.aws.infrastructure.stack_deployer import DeployOutcome, StackDeployer
from deepwiki_deploy.aws.infrastructure.stacks import (
    dependency_hints,
    ecs_stack,
    efs_stack,
    vpc_stack,
)
from deepwiki_deploy.aws.monitoring.status_monitor import StatusMonitor
from deepwiki_deploy.aws.services.image_publisher import ImagePublisher, PublishResult
from deepwiki_deploy.aws.state.stack_status import StackStatusProber
from deepwiki_deploy.aws.utils.aws_clients import AWSClientManager
from deepwiki_deploy.aws.utils.decorators import log_operation
from deepwiki_deploy.errors import PreconditionMissing
from deepwiki_deploy.prompts import Prompter
from deepwiki_deploy.settings import Settings

logger = logging.getLogger(__name__)


class DeploymentMode(str, Enum):
    FULL = "full"
    INFRASTRUCTURE = "infra"
    APPLICATION = "app"
    IMAGE = "image"


MODE_DESCRIPTIONS = {
    DeploymentMode.FULL: "Full deployment (VPC + EFS + ECS + Docker Build)",
    DeploymentMode.INFRASTRUCTURE: "Deploy infrastructure only (VPC + EFS)",
    DeploymentMode.APPLICATION: "Deploy application only (ECS + Docker Build) - requires existing VPC and EFS",
    DeploymentMode.IMAGE: "Update Docker image only (build and push to existing ECR)",
}

BANNER_BULLETS = [
    "VPC with public/private subnets",
    "EFS for persistent storage",
    "ECS Fargate for container orchestration",
    "ECR for Docker image registry",
]


class DeploymentOrchestrator:
    """Runs one deployment mode as a straight sequence of steps.

    The first failing step raises and aborts the run; re-running is safe
    because every stack deploy starts from the stack's current state.
    """

    def __init__(self, settings: Settings, prompter: Prompter, clients: AWSClientManager,
                 cancel_event: Optional[threading.Event] = None):
        self.settings = settings
        self.prompter = prompter
        self.clients = clients

        cfn = clients.cloudformation()
        hints = dependency_hints(settings)
        self.prober = StackStatusProber(cfn)
        self.gate = DependencyGate(self.prober, hints=hints)
        self.deployer = StackDeployer(cfn, settings, prompter, prober=self.prober, gate=self.gate,
                                      cancel_event=cancel_event)
        self.publisher = ImagePublisher(settings, self.prober, clients.ecr(), clients.ecs(), prompter,
                                        hint=hints[settings.ecs_stack_name])
        self.monitor = StatusMonitor(settings, self.prober, clients.ecs(), clients.efs())
        self.outcomes: Dict[str, DeployOutcome] = {}

    def select_mode(self) -> DeploymentMode:
        """Ask the operator which deployment mode to run."""
        console.step("Select Deployment Method")
        console.line("Please select the deployment method:")
        modes = list(MODE_DESCRIPTIONS)
        index = self.prompter.choose("Enter your choice (1-4)", [MODE_DESCRIPTIONS[m] for m in modes])
        mode = modes[index]
        console.info(f"Selected deployment method: {mode.value}")
        console.line()
        return mode

    def check_prerequisites(self, mode: DeploymentMode) -> None:
        """Verify credentials, Docker and templates needed by ``mode``.

        Raises:
            PreconditionMissing: naming the first missing prerequisite
        """
        console.step("Checking Prerequisites")

        try:
            identity = self.clients.sts().get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            raise PreconditionMissing(f"AWS credentials are not configured: {e}") from e
        console.success(f"AWS authenticated - Account: {identity.get('Account')}, "
                        f"Region: {self.settings.aws_region}")

        if mode in (DeploymentMode.FULL, DeploymentMode.APPLICATION, DeploymentMode.IMAGE):
            if shutil.which("docker") is None:
                raise PreconditionMissing("Docker is not installed. Please install Docker.")
            completed = subprocess.run(["docker", "--version"], capture_output=True, text=True)
            if completed.returncode != 0:
                raise PreconditionMissing("Docker is not running. Please start Docker.")
            console.success("Docker is available and running")

        templates = self._templates_for(mode)
        if templates:
            if not self.settings.cloudformation_dir.is_dir():
                raise PreconditionMissing(
                    f"CloudFormation directory not found: {self.settings.cloudformation_dir}"
                )
            for template in templates:
                path = self.settings.template_path(template)
                if not path.is_file():
                    raise PreconditionMissing(f"Required template not found: {path}")
            console.success("All required templates are available")
        console.line()

    def _templates_for(self, mode: DeploymentMode) -> List[str]:
        s = self.settings
        return {
            DeploymentMode.FULL: [s.vpc_template, s.efs_template, s.ecs_template],
            DeploymentMode.INFRASTRUCTURE: [s.vpc_template, s.efs_template],
            DeploymentMode.APPLICATION: [s.ecs_template],
            DeploymentMode.IMAGE: [],
        }[mode]

    @log_operation("VPC stack deployment")
    def deploy_vpc(self) -> DeployOutcome:
        outcome = self.deployer.deploy(vpc_stack(self.settings))
        self.outcomes[self.settings.vpc_stack_name] = outcome
        console.success(f"VPC stack deployment finished ({outcome.value})")
        console.line()
        return outcome

    @log_operation("EFS stack deployment")
    def deploy_efs(self) -> DeployOutcome:
        outcome = self.deployer.deploy(efs_stack(self.settings))
        self.outcomes[self.settings.efs_stack_name] = outcome
        if outcome != DeployOutcome.DECLINED:
            self.monitor.show_efs_details()
        console.success(f"EFS stack deployment finished ({outcome.value})")
        console.line()
        return outcome

    @log_operation("ECS stack deployment")
    def deploy_ecs(self, check_dependencies: bool = True) -> DeployOutcome:
        prerequisites = [self.settings.vpc_stack_name, self.settings.efs_stack_name]
        if check_dependencies:
            console.info("Checking dependencies...")
            self.gate.require(prerequisites)
            console.line()

        # prompts for API keys
        reference = ecs_stack(self.settings, self.prompter)
        outcome = self.deployer.deploy(reference, check_dependencies=False)
        self.outcomes[self.settings.ecs_stack_name] = outcome
        if outcome != DeployOutcome.DECLINED:
            self.monitor.show_ecr_instructions()
            self.monitor.show_ecs_service()
        console.success(f"ECS stack deployment finished ({outcome.value})")
        console.line()
        return outcome

    def publish_image(self) -> PublishResult:
        result = self.publisher.publish()
        console.success("Docker image build and push completed")
        console.line()
        return result

    def check_infrastructure_dependencies(self) -> None:
        console.step("Checking Infrastructure Dependencies")
        self.gate.require([self.settings.vpc_stack_name, self.settings.efs_stack_name])
        console.line()

    def run(self, mode: DeploymentMode) -> Dict[str, Any]:
        """Execute ``mode``. Any failure propagates and aborts the run.

        Returns:
            Summary with the mode, per-stack outcomes and the pushed image URI
        """
        console.banner("DeepWiki AWS Deployment", BANNER_BULLETS)
        image: Optional[PublishResult] = None

        if mode == DeploymentMode.FULL:
            console.info("Starting full deployment...")
            self.deploy_vpc()
            self.deploy_efs()
            self.deploy_ecs()
            image = self.publish_image()
            self.monitor.show_deployment_info()
        elif mode == DeploymentMode.INFRASTRUCTURE:
            console.info("Deploying infrastructure only...")
            self.deploy_vpc()
            self.deploy_efs()
            console.success("Infrastructure deployment completed!")
            console.info("To deploy the application, run again with --mode app.")
        elif mode == DeploymentMode.APPLICATION:
            console.info("Deploying application only...")
            self.check_infrastructure_dependencies()
            self.deploy_ecs(check_dependencies=False)
            image = self.publish_image()
            self.monitor.show_deployment_info()
        elif mode == DeploymentMode.IMAGE:
            console.info("Building and pushing Docker image only...")
            image = self.publish_image()
            console.success("Docker image updated!")

        return {
            'mode': mode.value,
            'stacks': {name: outcome.value for name, outcome in self.outcomes.items()},
            'image_uri': image.image_uri if image else None,
            'redeployed': image.redeployed if image else False,
        }
