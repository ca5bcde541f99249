# src/deepwiki_deploy/settings.py
from pathlib import Path
from typing import Optional, Dict
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for all deployment settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from deepwiki_deploy.settings import get_settings
        settings = get_settings()
        stack_name = settings.vpc_stack_name

    Components receive the instance explicitly; get_settings() is only
    called at the CLI boundary.
    """

    # Project Settings
    project_name: str = Field(
        default="deepwiki",
        description="Project name, used as the ProjectName stack parameter and local image name"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="ap-northeast-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_profile: Optional[str] = Field(
        default=None,
        alias="AWS_PROFILE"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Override endpoint (LocalStack or moto server)"
    )

    # CloudFormation Configuration
    cloudformation_dir: Path = Field(
        default=Path("cloudformation"),
        description="Directory holding the CloudFormation templates"
    )

    vpc_stack_name: str = Field(default="deepwiki-vpc-network")
    vpc_template: str = Field(default="01-vpc-network.yaml")

    efs_stack_name: str = Field(default="deepwiki-efs")
    efs_template: str = Field(default="02-efs.yaml")

    ecs_stack_name: str = Field(default="deepwiki-ecs")
    ecs_template: str = Field(default="03-ecs.yaml")

    # Waiting
    wait_delay_seconds: float = Field(
        default=15.0,
        description="Seconds between stack status polls"
    )

    wait_timeout_seconds: float = Field(
        default=3600.0,
        description="Upper bound for a single create/update/delete wait"
    )

    # Image Configuration
    docker_context: Path = Field(
        default=Path("."),
        description="Docker build context (must contain a Dockerfile)"
    )

    image_tag: str = Field(default="latest")

    image_platform: str = Field(default="linux/amd64")

    # ECS stack parameters (prompted for when unset)
    allowed_cidr: Optional[str] = Field(
        default=None,
        alias="ALLOWED_CIDR",
        description="CIDR block allowed to reach the service"
    )

    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    google_api_key: Optional[str] = Field(default=None, alias="GOOGLE_API_KEY")
    openrouter_api_key: Optional[str] = Field(default=None, alias="OPENROUTER_API_KEY")
    azure_openai_api_key: Optional[str] = Field(default=None, alias="AZURE_OPENAI_API_KEY")
    azure_openai_endpoint: Optional[str] = Field(default=None, alias="AZURE_OPENAI_ENDPOINT")
    azure_openai_version: Optional[str] = Field(default=None, alias="AZURE_OPENAI_VERSION")

    # Cache Cleanup Configuration
    cache_service_name: str = Field(
        default="deepwiki",
        description="docker compose service running DeepWiki"
    )

    cache_root: str = Field(
        default="/root/.adalflow",
        description="Cache root inside the DeepWiki container"
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Logging level"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lower-case level names."""
        return v.upper()

    @field_validator('wait_delay_seconds', 'wait_timeout_seconds')
    @classmethod
    def validate_positive(cls, v):
        """Waits must be bounded and make progress."""
        if v <= 0:
            raise ValueError("wait settings must be positive")
        return v

    def template_path(self, template: str) -> Path:
        """Resolve a template file name inside the CloudFormation directory."""
        return self.cloudformation_dir / template

    @property
    def stack_names(self) -> Dict[str, str]:
        """Stack names keyed by role."""
        return {
            'vpc': self.vpc_stack_name,
            'efs': self.efs_stack_name,
            'ecs': self.ecs_stack_name,
        }

    def get_display_dict(self) -> Dict[str, str]:
        """Get configuration for display, with secrets masked.

        Returns:
            Dictionary of printable settings
        """
        def masked(value: Optional[str]) -> str:
            return "<set>" if value else "<unset>"

        return {
            'Project Name': self.project_name,
            'AWS Region': self.aws_region,
            'AWS Profile': self.aws_profile or '',
            'AWS Endpoint': self.aws_endpoint_url or '',
            'CloudFormation Dir': str(self.cloudformation_dir),
            'VPC Stack': self.vpc_stack_name,
            'EFS Stack': self.efs_stack_name,
            'ECS Stack': self.ecs_stack_name,
            'Docker Context': str(self.docker_context),
            'Image': f"{self.project_name}:{self.image_tag} ({self.image_platform})",
            'Wait': f"every {self.wait_delay_seconds:g}s, up to {self.wait_timeout_seconds:g}s",
            'Allowed CIDR': self.allowed_cidr or '',
            'OpenAI API Key': masked(self.openai_api_key),
            'Cache Service': self.cache_service_name,
            'Cache Root': self.cache_root,
        }

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
