"""
Configuration Management Module

This module defines the configuration structure for the CDK application.
It uses Pydantic for data validation.

Structure:
- ProjectConfig: Common functionality (naming, tags, parameter names)
- PipelineConfig: The self-mutating CDK pipeline and the stages it deploys
- InfrastructureConfig: Everything deployed inside one stage (dev, prod)

Configurations are read from YAML files:
```
config/
  ├── pipeline.yaml
  └── environments/
      ├── dev.yaml
      └── prod.yaml
```
"""

from typing import Dict, List, Literal, Optional
from aws_cdk import Tags, Stack
from pydantic import BaseModel, Field
from .enums import (
    AwsRegion,
    EnvironmentName
)


class AwsConfig(BaseModel):
    """
    Base AWS configuration.

    Attributes:
        account: AWS account ID
        region: AWS deployment region
    """
    account: str = Field(pattern=r"^\d{12}$")
    region: AwsRegion = AwsRegion.US_EAST_1

    @property
    def region_str(self) -> str:
        """Returns the region as a string."""
        return self.region.value


class GithubConfig(BaseModel):
    """
    GitHub source of a pipeline.

    Attributes:
        connection_arn: CodeStar connection used to pull the repository
        owner: GitHub organisation or user
        repo: Repository name
        branch: Branch to track (each pipeline has its own default)
        path: Sub-directory of the repository holding the project
    """
    connection_arn: str = Field(
        pattern=r"^arn:aws:code(connections|star-connections):[a-z0-9-]+:\d{12}:connection/[a-zA-Z0-9-]+$",
        description="GitHub connection ARN"
    )
    owner: str
    repo: str
    branch: Optional[str] = None
    path: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class DnsConfig(BaseModel):
    """
    DNS configuration.

    Attributes:
        domain: Apex domain of the public hosted zone
    """
    domain: str = Field(pattern=r"^([a-z0-9-]+\.)+[a-z]{2,}$")


class ProjectConfig(BaseModel):
    """
    Base configuration with common methods.

    Provides tag management, resource prefixes and SSM parameter naming
    shared by the pipeline and the stage configurations.
    """
    project_name: str = Field(pattern=r"^[a-z][a-z0-9-]*$")
    aws: AwsConfig
    dns: DnsConfig

    def prefix(self, base: str) -> str:
        """Generates a standardized prefix for resources."""
        return f"{self.project_name}-{base}"

    def shared_parameter_name(self, *parts: str) -> str:
        """SSM parameter name shared by every stage of the project."""
        return "/" + "/".join((self.project_name,) + parts)

    def parameter_arn(self, parameter_name: str) -> str:
        return f"arn:aws:ssm:{self.aws.region_str}:{self.aws.account}:parameter{parameter_name}"

    @property
    def zone_id_parameter(self) -> str:
        return self.shared_parameter_name("dns", "zone-id")

    @property
    def certificate_arn_parameter(self) -> str:
        return self.shared_parameter_name("dns", "certificate-arn")

    @property
    def tags(self) -> Dict[str, str]:
        """Standardized tags to apply to all resources."""
        return {
            "ProjectName": self.project_name,
            "ManagedBy": "CDK"
        }

    def add_stack_global_tags(self, stack: Stack):
        """Adds global tags to the stack."""
        for key, value in self.tags.items():
            Tags.of(stack).add(key, value)


class PipelineConfig(ProjectConfig):
    """
    CDK pipeline configuration.

    Attributes:
        github: Source of this CDK application
        stages: Stages deployed by the pipeline, in order
        poll_period: Seconds between two reads of an image tag parameter
        poll_max_attempts: Reads before giving up (None waits until the build times out)
    """
    github: GithubConfig
    stages: List[EnvironmentName] = Field(
        default_factory=lambda: [EnvironmentName.DEV, EnvironmentName.PROD],
        min_length=1
    )
    poll_period: int = Field(default=30, ge=1)
    poll_max_attempts: Optional[int] = Field(default=None, ge=1)


class DockerHubConfig(BaseModel):
    """
    Docker Hub credentials, used to avoid pull throttling.

    Attributes:
        account: Docker Hub user name
        secret: Secrets Manager id of the Docker Hub password
    """
    account: str
    secret: str


class ImagePipelineConfig(BaseModel):
    """
    Container image build pipeline configuration.

    Attributes:
        github: Source repository (branch defaults to deploy/<env>)
        additional_build_env: Extra build environment variables
        additional_build_secrets: Extra secrets (env name -> Secrets Manager id)
        docker_hub: Optional Docker Hub login
        trigger_pipelines: Pipelines started after a successful build
    """
    github: GithubConfig
    additional_build_env: Dict[str, str] = Field(default_factory=dict)
    additional_build_secrets: Dict[str, str] = Field(default_factory=dict)
    docker_hub: Optional[DockerHubConfig] = None
    trigger_pipelines: List[str] = Field(default_factory=list)


class BackendConfig(BaseModel):
    """
    API backend configuration.

    Attributes:
        memory_size: Lambda memory in MB
        timeout_seconds: Lambda timeout
    """
    memory_size: int = Field(default=512, ge=128, le=10240)
    timeout_seconds: int = Field(default=29, ge=1, le=900)


class WebsiteConfig(BaseModel):
    index: str = "index.html"
    error: Optional[str] = None


class FrontendConfig(BaseModel):
    """
    Static frontend configuration.

    Attributes:
        github: Source repository (branch defaults to deploy/<env>)
        build_command: Command producing the static bundle
        output_dir: Directory synced to the bucket
        node_version: CodeBuild nodejs runtime version
        website: Index and error documents
    """
    github: GithubConfig
    build_command: str = "npm run build"
    output_dir: str = "dist"
    node_version: str = "18"
    website: WebsiteConfig = WebsiteConfig()


class InfrastructureConfig(ProjectConfig):
    """
    Complete configuration of one deployment stage.

    Attributes:
        env_name: Deployment environment (dev, prod)
        manual_approval: Require a manual approval before promoting to this stage
        log_retention: Retention of the build log groups (aws_logs.RetentionDays member)
        api_handler: API handler image pipeline
        backend: API backend
        frontend: Static frontend

    Example:
        ```yaml
        # config/environments/dev.yaml
        manual_approval: false

        api_handler:
          github:
            connection_arn: "arn:aws:codeconnections:..."
            owner: "my-org"
            repo: "bg"
            branch: "deploy/dev/apiFn"
            path: "apiFn"

        frontend:
          github:
            connection_arn: "arn:aws:codeconnections:..."
            owner: "my-org"
            repo: "bg"
            path: "web"
        ```
    """
    env_name: EnvironmentName
    manual_approval: bool = False
    log_retention: Literal[
        "ONE_WEEK", "TWO_WEEKS", "ONE_MONTH", "THREE_MONTHS", "SIX_MONTHS", "ONE_YEAR"
    ] = "ONE_MONTH"
    api_handler: ImagePipelineConfig
    backend: BackendConfig = BackendConfig()
    frontend: FrontendConfig

    @property
    def env_name_str(self) -> str:
        """Returns the environment name as a string."""
        return self.env_name.value

    @property
    def is_prod(self) -> bool:
        return self.env_name == EnvironmentName.PROD

    def prefix(self, base: str) -> str:
        return f"{self.project_name}-{self.env_name_str}-{base}"

    def parameter_name(self, *parts: str) -> str:
        """SSM parameter name scoped to this stage."""
        return self.shared_parameter_name(self.env_name_str, *parts)

    @property
    def api_domain_name(self) -> str:
        if self.is_prod:
            return f"api.{self.dns.domain}"
        return f"{self.env_name_str}.api.{self.dns.domain}"

    @property
    def frontend_domain_name(self) -> str:
        if self.is_prod:
            return self.dns.domain
        return f"{self.env_name_str}.{self.dns.domain}"

    @property
    def tags(self) -> Dict[str, str]:
        return {"EnvName": self.env_name_str, **super().tags}
