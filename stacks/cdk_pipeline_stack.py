from aws_cdk import Stack
from aws_cdk import pipelines
from aws_cdk import aws_codebuild as codebuild
from constructs import Construct
from config.base_config import PipelineConfig
from cdk_constructs.build_commands import cd_commands


class CdkPipelineStack(Stack):
    """
    Self-mutating pipeline deploying this CDK application.

    Stages are added to `pipes` by the application once the stack exists.
    """

    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 config: PipelineConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.config = config
        self.pipeline_name = self.config.prefix("cdk-pipeline")

        github = self.config.github
        source = pipelines.CodePipelineSource.connection(
            github.full_name,
            github.branch or "deploy/cdk",
            connection_arn=github.connection_arn
        )

        commands = cd_commands(github.path) + [
            "pip install .",
            "npx cdk synth",
        ]

        self.pipes = pipelines.CodePipeline(
            self, "CdkPipeline",
            pipeline_name=self.pipeline_name,
            cross_account_keys=False,
            synth=pipelines.ShellStep(
                "Synth",
                input=source,
                install_commands=["npm install -g aws-cdk"],
                commands=commands,
                primary_output_directory=f"{github.path}/cdk.out" if github.path else None
            ),
            code_build_defaults=pipelines.CodeBuildOptions(
                build_environment=codebuild.BuildEnvironment(
                    build_image=codebuild.LinuxBuildImage.STANDARD_7_0
                )
            )
        )

        # Global tags for the stack
        self.config.add_stack_global_tags(self)
