"""
Stages deployed by the CDK pipeline.

For every environment, the image pipelines (SubPipes) are deployed first. A
post step then waits until each of them has published an image tag, and
only then the application stacks reading those tags (App) are deployed.
"""

from typing import Dict
from aws_cdk import Environment, Stage
from aws_cdk import pipelines
from constructs import Construct
from config.base_config import InfrastructureConfig, PipelineConfig
from cdk_constructs.poll_parameter_step import PollParameterStep
from stacks.backend_stack import BackendStack
from stacks.cdk_pipeline_stack import CdkPipelineStack
from stacks.dns_stack import DnsStack
from stacks.ecr_pipeline_stack import EcrPipelineStack
from stacks.frontend_stack import FrontendStack

API_HANDLER = "api-handler"


class DnsStage(Stage):
    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 config: PipelineConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.dns_stack = DnsStack(
            self, "DnsStack",
            stack_name=config.prefix("dns-stack"),
            config=config
        )


class SubPipesStage(Stage):
    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 config: InfrastructureConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.api_handler_pipeline = EcrPipelineStack(
            self, "ApiHandlerPipeline",
            stack_name=config.prefix("api-handler-pipeline-stack"),
            name=API_HANDLER,
            pipeline_config=config.api_handler,
            config=config
        )

    @property
    def tag_parameters(self) -> Dict[str, str]:
        """Image tag parameter of each image pipeline, by image name."""
        return {API_HANDLER: self.api_handler_pipeline.tag_parameter}


class AppStage(Stage):
    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 api_repository_name: str,
                 api_tag_parameter: str,
                 config: InfrastructureConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.backend_stack = BackendStack(
            self, "BackendStack",
            stack_name=config.prefix("backend-stack"),
            repository_name=api_repository_name,
            tag_parameter=api_tag_parameter,
            config=config
        )

        self.frontend_stack = FrontendStack(
            self, "FrontendStack",
            stack_name=config.prefix("frontend-stack"),
            config=config
        )


def add_deployment_stages(cdk_pipeline: CdkPipelineStack,
                          config: PipelineConfig,
                          stage_configs: Dict[str, InfrastructureConfig]):
    """Add the DNS stage, then the SubPipes and App stages of every environment."""
    pipes = cdk_pipeline.pipes
    env = Environment(account=config.aws.account, region=config.aws.region_str)

    dns_stage = DnsStage(cdk_pipeline, "DnsStage", config=config, env=env)
    pipes.add_stage(dns_stage)

    stages = []
    for env_name in config.stages:
        stage_config = stage_configs[env_name.value]
        if stage_config.aws != config.aws:
            raise ValueError(
                f"Stage {env_name.value} targets {stage_config.aws.account}/{stage_config.aws.region_str}, "
                f"the pipeline deploys to {config.aws.account}/{config.aws.region_str}"
            )

        sub_pipes = SubPipesStage(
            cdk_pipeline, f"{env_name.value}-SubPipes",
            config=stage_config,
            env=env
        )

        pre = None
        if stage_config.manual_approval:
            pre = [pipelines.ManualApprovalStep(f"PromoteTo{env_name.value.capitalize()}")]

        # the App stage only starts once every image tag left DRY_RUN_TAG
        post = [
            PollParameterStep(
                "WaitForImages" if len(sub_pipes.tag_parameters) == 1 else f"WaitForImages-{name}",
                parameter=parameter,
                until_not=EcrPipelineStack.DRY_RUN_TAG,
                poll_period=config.poll_period,
                max_attempts=config.poll_max_attempts,
                parameter_arn=config.parameter_arn(parameter)
            )
            for name, parameter in sub_pipes.tag_parameters.items()
        ]
        pipes.add_stage(sub_pipes, pre=pre, post=post)

        app_stage = AppStage(
            cdk_pipeline, f"{env_name.value}-App",
            api_repository_name=sub_pipes.api_handler_pipeline.repository_name,
            api_tag_parameter=sub_pipes.tag_parameters[API_HANDLER],
            config=stage_config,
            env=env
        )
        pipes.add_stage(app_stage)
        stages.append((sub_pipes, app_stage))

    return dns_stage, stages
