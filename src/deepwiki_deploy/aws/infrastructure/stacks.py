"""
Stack references for the DeepWiki deployment.

Builds the VPC, EFS and ECS stack references from settings. The ECS stack
needs API keys and an access CIDR, which come from settings or the prompter.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from deepwiki_deploy.prompts import Prompter
from deepwiki_deploy.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_CIDR = "0.0.0.0/0"

EFS_FEATURES = [
    "Performance Mode: generalPurpose",
    "Throughput Mode: provisioned (100 MiB/s)",
    "Encryption: Enabled",
    "Backup: EFS native backup enabled",
    "Lifecycle Policy: Move to IA after 30 days",
    "Access Points: 4 (main, repos, databases, wikicache)",
]

ECS_FEATURES = [
    "Launch Type: Fargate",
    "CPU: 2048 (2 vCPU)",
    "Memory: 4096 MB (4 GB)",
    "Desired Count: 1",
    "Network: Public subnets with security group restrictions",
    "Auto Scaling: Enabled (1-10 instances)",
    "Container Insights: Enabled",
    "EFS Integration: Persistent storage",
    "Secrets Manager: API keys stored securely",
]


@dataclass
class StackReference:
    """A stack to deploy: name, template and parameters."""
    name: str
    template: Path
    label: str
    parameters: Dict[str, str] = field(default_factory=dict)
    capabilities: List[str] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)
    sensitive_parameters: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)

    def cfn_parameters(self) -> List[Dict[str, str]]:
        """Parameters in CloudFormation's ParameterKey/ParameterValue shape."""
        return [
            {'ParameterKey': key, 'ParameterValue': value}
            for key, value in self.parameters.items()
        ]

    def display_parameters(self) -> Dict[str, str]:
        """Parameters with secrets masked."""
        return {
            key: ("****" if key in self.sensitive_parameters else value)
            for key, value in self.parameters.items()
        }


def vpc_stack(settings: Settings) -> StackReference:
    """VPC and network stack. No prerequisites."""
    return StackReference(
        name=settings.vpc_stack_name,
        template=settings.template_path(settings.vpc_template),
        label="VPC Network",
        parameters={'ProjectName': settings.project_name},
        capabilities=['CAPABILITY_IAM'],
    )


def efs_stack(settings: Settings) -> StackReference:
    """EFS stack. Requires the VPC stack."""
    return StackReference(
        name=settings.efs_stack_name,
        template=settings.template_path(settings.efs_template),
        label="EFS",
        parameters={'ProjectName': settings.project_name},
        depends_on=[settings.vpc_stack_name],
        features=list(EFS_FEATURES),
    )


@dataclass
class ApiKeys:
    """LLM provider credentials passed to the ECS stack."""
    openai: str
    google: str = ""
    openrouter: str = ""
    azure_openai: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_version: str = ""

    def as_parameters(self) -> Dict[str, str]:
        parameters = {'OpenAIAPIKey': self.openai}
        if self.google:
            parameters['GoogleAPIKey'] = self.google
        if self.openrouter:
            parameters['OpenRouterAPIKey'] = self.openrouter
        if self.azure_openai:
            parameters['AzureOpenAIAPIKey'] = self.azure_openai
            parameters['AzureOpenAIEndpoint'] = self.azure_openai_endpoint
            parameters['AzureOpenAIVersion'] = self.azure_openai_version
        return parameters


def collect_api_keys(settings: Settings, prompter: Prompter) -> ApiKeys:
    """Take API keys from settings, prompting (masked) for any that are unset.

    The OpenAI key is required; the others may be skipped with an empty answer.
    """
    def value_or_prompt(current: Optional[str], question: str, required: bool = False) -> str:
        if current:
            return current
        return prompter.secret(question, required=required)

    openai = value_or_prompt(settings.openai_api_key, "OpenAI API Key (required)", required=True)
    google = value_or_prompt(settings.google_api_key, "Google API Key (optional, press Enter to skip)")
    openrouter = value_or_prompt(settings.openrouter_api_key,
                                 "OpenRouter API Key (optional, press Enter to skip)")
    azure = value_or_prompt(settings.azure_openai_api_key,
                            "Azure OpenAI API Key (optional, press Enter to skip)")

    endpoint = version = ""
    if azure:
        endpoint = settings.azure_openai_endpoint or prompter.text("Azure OpenAI Endpoint")
        version = settings.azure_openai_version or prompter.text("Azure OpenAI Version")

    return ApiKeys(
        openai=openai,
        google=google,
        openrouter=openrouter,
        azure_openai=azure,
        azure_openai_endpoint=endpoint,
        azure_openai_version=version,
    )


def resolve_allowed_cidr(settings: Settings, prompter: Prompter) -> str:
    """Allowed access CIDR from settings or prompt, defaulting to 0.0.0.0/0."""
    if settings.allowed_cidr:
        return settings.allowed_cidr
    answer = prompter.text(
        f"Enter CIDR block for allowed access (default: {DEFAULT_ALLOWED_CIDR} for all)",
        default=DEFAULT_ALLOWED_CIDR,
    )
    return answer.strip() or DEFAULT_ALLOWED_CIDR


def ecs_stack(settings: Settings, prompter: Prompter) -> StackReference:
    """ECS/Fargate stack. Requires the VPC and EFS stacks."""
    api_keys = collect_api_keys(settings, prompter)
    allowed_cidr = resolve_allowed_cidr(settings, prompter)
    logger.info(f"ECS stack allowed CIDR: {allowed_cidr}")

    parameters = {
        'ProjectName': settings.project_name,
        **api_keys.as_parameters(),
        'AllowedCIDR': allowed_cidr,
    }
    return StackReference(
        name=settings.ecs_stack_name,
        template=settings.template_path(settings.ecs_template),
        label="ECS",
        parameters=parameters,
        capabilities=['CAPABILITY_NAMED_IAM'],
        depends_on=[settings.vpc_stack_name, settings.efs_stack_name],
        sensitive_parameters=['OpenAIAPIKey', 'GoogleAPIKey', 'OpenRouterAPIKey', 'AzureOpenAIAPIKey'],
        features=list(ECS_FEATURES),
    )


def dependency_hints(settings: Settings) -> Dict[str, str]:
    """Remediation text shown when a prerequisite stack is missing."""
    return {
        settings.vpc_stack_name: "Please deploy the VPC stack first (deepwiki-deploy vpc).",
        settings.efs_stack_name: "Please deploy the EFS stack first (deepwiki-deploy efs).",
        settings.ecs_stack_name: "Please deploy the ECS stack first (deepwiki-deploy ecs).",
    }
