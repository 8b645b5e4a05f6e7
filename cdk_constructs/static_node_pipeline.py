from typing import Optional
from aws_cdk import RemovalPolicy
from aws_cdk import aws_codebuild as codebuild
from aws_cdk import aws_codepipeline as codepipeline
from aws_cdk import aws_codepipeline_actions as codepipeline_actions
from aws_cdk import aws_cloudfront as cloudfront
from aws_cdk import aws_iam as iam
from aws_cdk import aws_logs as logs
from aws_cdk import aws_s3 as s3
from constructs import Construct
from config.base_config import InfrastructureConfig
from .build_commands import cd_commands


class StaticNodePipeline(Construct):
    """Builds a node project from GitHub and syncs its output into a bucket."""

    def __init__(self,
                 scope: Construct,
                 id: str,
                 config: InfrastructureConfig,
                 target: s3.IBucket,
                 distribution: Optional[cloudfront.IDistribution] = None,
                 **kwargs) -> None:
        super().__init__(scope, id)
        self.config = config
        self.frontend = config.frontend
        self.target = target
        self.distribution = distribution

        self.project = self._create_build_project()
        self._grant_permissions()
        self.pipeline = self._create_pipeline()

    def _build_spec(self) -> codebuild.BuildSpec:
        post_build = [
            f"aws s3 sync --delete {self.frontend.output_dir} s3://{self.target.bucket_name}/",
        ]
        if self.distribution:
            post_build.append(
                "aws cloudfront create-invalidation"
                f" --distribution-id {self.distribution.distribution_id} --paths '/*'"
            )

        return codebuild.BuildSpec.from_object({
            "version": "0.2",
            "phases": {
                "install": {
                    "runtime-versions": {
                        "nodejs": self.frontend.node_version,
                    },
                },
                "pre_build": {
                    "commands": cd_commands(self.frontend.github.path) + ["npm ci"],
                },
                "build": {
                    "on-failure": "ABORT",
                    "commands": [self.frontend.build_command],
                },
                "post_build": {
                    "commands": post_build,
                },
            },
        })

    def _create_build_project(self) -> codebuild.PipelineProject:
        log_group = logs.LogGroup(
            self, "FrontendBuildLogGroup",
            log_group_name=f"/aws/codebuild/{self.config.prefix('frontend-build')}",
            retention=logs.RetentionDays[self.config.log_retention],
            removal_policy=RemovalPolicy.DESTROY
        )

        return codebuild.PipelineProject(
            self, "BuildProject",
            project_name=self.config.prefix("frontend-build"),
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0
            ),
            cache=codebuild.Cache.local(codebuild.LocalCacheMode.SOURCE),
            build_spec=self._build_spec(),
            logging=codebuild.LoggingOptions(
                cloud_watch=codebuild.CloudWatchLoggingOptions(log_group=log_group)
            )
        )

    def _grant_permissions(self):
        self.project.add_to_role_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=[
                "s3:PutObject",
                "s3:GetObject",
                "s3:ListBucket",
                "s3:DeleteObject",
                "s3:GetBucketLocation",
            ],
            resources=[
                self.target.bucket_arn,
                self.target.arn_for_objects("*"),
            ]
        ))

        if self.distribution:
            self.project.add_to_role_policy(iam.PolicyStatement(
                actions=["cloudfront:CreateInvalidation"],
                resources=[self.distribution.distribution_arn]
            ))

    def _create_pipeline(self) -> codepipeline.Pipeline:
        github = self.frontend.github

        pipeline = codepipeline.Pipeline(
            self, "Pipeline",
            pipeline_name=self.config.prefix("frontend-pipeline"),
            cross_account_keys=False
        )

        # Source stage
        source_output = codepipeline.Artifact()
        pipeline.add_stage(
            stage_name="Source",
            actions=[
                codepipeline_actions.CodeStarConnectionsSourceAction(
                    action_name="GitHubSource",
                    owner=github.owner,
                    repo=github.repo,
                    branch=github.branch or f"deploy/{self.config.env_name_str}",
                    connection_arn=github.connection_arn,
                    output=source_output
                )
            ]
        )

        # Build stage
        pipeline.add_stage(
            stage_name="Build",
            actions=[
                codepipeline_actions.CodeBuildAction(
                    action_name="Build",
                    project=self.project,
                    input=source_output
                )
            ]
        )
        return pipeline
