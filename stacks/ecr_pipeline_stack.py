from aws_cdk import Stack, RemovalPolicy
from aws_cdk import aws_codebuild as codebuild
from aws_cdk import aws_codepipeline as codepipeline
from aws_cdk import aws_codepipeline_actions as codepipeline_actions
from aws_cdk import aws_iam as iam
from aws_cdk import aws_ecr as ecr
from aws_cdk import aws_logs as logs
from aws_cdk import aws_secretsmanager as secretsmanager
from aws_cdk import aws_ssm as ssm
from config.base_config import ImagePipelineConfig, InfrastructureConfig
from constructs import Construct
from cdk_constructs.build_commands import (
    DRY_RUN_TAG,
    cd_commands,
    docker_build_args,
    ecr_login_command,
    fetch_secret_commands,
    image_tag_commands,
    put_parameter_command,
    start_pipeline_commands,
)


class EcrPipelineStack(Stack):
    """
    Container image pipeline: GitHub -> docker build -> ECR.

    After pushing, the build writes the image tag into `tag_parameter`, which
    holds DRY_RUN_TAG until the first successful build.
    """

    DRY_RUN_TAG = DRY_RUN_TAG

    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 name: str,
                 pipeline_config: ImagePipelineConfig,
                 config: InfrastructureConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.config = config
        self.pipeline_config = pipeline_config
        self.image_name = name
        # plain string, usable from other stages
        self.repository_name = self.config.prefix(name).lower()

        self.repository = ecr.Repository(
            self, "Ecr",
            repository_name=self.repository_name,
            removal_policy=RemovalPolicy.RETAIN
        )
        self.tag_parameter = self.config.parameter_name(name, "image-tag")
        self.tag_ssm_parameter = ssm.StringParameter(
            self, "EcrTagParameter",
            parameter_name=self.tag_parameter,
            # overwritten by every successful build
            string_value=DRY_RUN_TAG,
            description=f"Latest image tag pushed to {self.repository_name}"
        )

        self.build_secrets = self._build_secrets()
        self.project = self._create_build_project()
        self.pipeline = self._create_pipeline()
        self._grant_permissions()
        self.config.add_stack_global_tags(self)

    def _build_secrets(self):
        # env name -> Secrets Manager id
        secrets = {}
        if self.pipeline_config.docker_hub:
            secrets["DOCKER_HUB_SECRET"] = self.pipeline_config.docker_hub.secret
        secrets.update(self.pipeline_config.additional_build_secrets)
        return secrets

    def _build_env(self):
        build_env = {
            "STAGE": self.config.env_name_str,
            "REPOSITORY_URI": self.repository.repository_uri,
        }
        if self.pipeline_config.docker_hub:
            build_env["DOCKER_HUB_ACCOUNT"] = self.pipeline_config.docker_hub.account
        build_env.update(self.pipeline_config.additional_build_env)
        return build_env

    def _build_spec(self, build_env) -> codebuild.BuildSpec:
        docker_hub = self.pipeline_config.docker_hub
        # passed to the image as build-arg variables
        build_args = docker_build_args(build_env, self.pipeline_config.additional_build_secrets.keys())

        pre_build = ["aws --version"]
        pre_build += fetch_secret_commands(self.build_secrets)
        pre_build += image_tag_commands()
        if docker_hub:
            pre_build.append('docker login --username "$DOCKER_HUB_ACCOUNT" --password "$DOCKER_HUB_SECRET"')

        post_build = ["docker logout"] if docker_hub else []
        post_build += [
            ecr_login_command(self.account, self.region),
            'docker push "$REPOSITORY_URI:latest"',
            'docker push "$REPOSITORY_URI:$IMAGE_TAG"',
            put_parameter_command(self.tag_parameter),
        ]
        post_build += start_pipeline_commands(self.pipeline_config.trigger_pipelines)

        phases = {
            "pre_build": {"on-failure": "ABORT", "commands": pre_build},
            # the tag is only published when the image was built
            "build": {
                "on-failure": "ABORT",
                "commands": [
                    f'docker build -t "$REPOSITORY_URI:latest" {build_args} .',
                    'docker tag "$REPOSITORY_URI:latest" "$REPOSITORY_URI:$IMAGE_TAG"',
                ]
            },
            "post_build": {"commands": post_build},
        }
        install = cd_commands(self.pipeline_config.github.path)
        if install:
            phases = {"install": {"commands": install}, **phases}

        return codebuild.BuildSpec.from_object({
            "version": "0.2",
            "phases": phases,
        })

    def _create_build_project(self) -> codebuild.PipelineProject:
        build_env = self._build_env()

        log_group = logs.LogGroup(
            self, "BuildLogGroup",
            log_group_name=f"/aws/codebuild/{self.config.prefix(self.image_name + '-build')}",
            retention=logs.RetentionDays[self.config.log_retention],
            removal_policy=RemovalPolicy.DESTROY
        )

        return codebuild.PipelineProject(
            self, "BuildProject",
            project_name=self.config.prefix(f"{self.image_name}-build"),
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
                compute_type=codebuild.ComputeType.SMALL,
                privileged=True
            ),
            environment_variables={
                key: codebuild.BuildEnvironmentVariable(value=value)
                for key, value in build_env.items()
            },
            build_spec=self._build_spec(build_env),
            logging=codebuild.LoggingOptions(
                cloud_watch=codebuild.CloudWatchLoggingOptions(log_group=log_group)
            )
        )

    def _create_pipeline(self) -> codepipeline.Pipeline:
        github = self.pipeline_config.github
        source_output = codepipeline.Artifact()

        pipeline = codepipeline.Pipeline(
            self, "Pipeline",
            pipeline_name=self.config.prefix(f"{self.image_name}-pipeline"),
            cross_account_keys=False
        )

        # Source stage, triggered on branch commit
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
                    action_name="BuildAndPush",
                    input=source_output,
                    project=self.project
                )
            ]
        )
        return pipeline

    def _grant_permissions(self):
        principal = self.project.grant_principal

        for key, secret_id in self.build_secrets.items():
            secretsmanager.Secret.from_secret_name_v2(
                self, f"BuildSecret_{key}", secret_id
            ).grant_read(principal)

        self.repository.grant_pull_push(principal)
        self.tag_ssm_parameter.grant_write(principal)

        # CloudFormation reads the tag when deploying the stacks using the image
        iam.Role(
            self, "ReadParameterRole",
            assumed_by=iam.ServicePrincipal("cloudformation.amazonaws.com"),
            inline_policies={
                "ReadParameterPolicy": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=["ssm:GetParameter", "ssm:GetParameters"],
                            resources=[self.tag_ssm_parameter.parameter_arn]
                        )
                    ]
                )
            }
        )

        if self.pipeline_config.trigger_pipelines:
            principal.add_to_principal_policy(iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["codepipeline:StartPipelineExecution"],
                resources=[
                    f"arn:aws:codepipeline:{self.region}:{self.account}:{name}"
                    for name in self.pipeline_config.trigger_pipelines
                ]
            ))
