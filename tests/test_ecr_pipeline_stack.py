"""
Test synthesis of the image pipeline publishing image tags.
"""

import json

import aws_cdk as cdk
from aws_cdk.assertions import Match, Template

from config.base_config import InfrastructureConfig
from stacks.ecr_pipeline_stack import EcrPipelineStack
from tests.conftest import ACCOUNT, REGION, stage_config_dict


def synth_ecr_pipeline(config, region=REGION):
    app = cdk.App()
    stack = EcrPipelineStack(
        app, "TestEcrPipelineStack",
        name="api-handler",
        pipeline_config=config.api_handler,
        config=config,
        env=cdk.Environment(account=ACCOUNT, region=region)
    )
    return stack, Template.from_stack(stack)


def build_spec_text(template):
    projects = template.find_resources("AWS::CodeBuild::Project")
    assert len(projects) == 1
    project = next(iter(projects.values()))
    return json.dumps(project["Properties"]["Source"]["BuildSpec"])


def test_tag_parameter_starts_not_ready(dev_config):
    stack, template = synth_ecr_pipeline(dev_config)

    assert stack.tag_parameter == "/bg/dev/api-handler/image-tag"
    assert EcrPipelineStack.DRY_RUN_TAG == "none"
    template.has_resource_properties("AWS::SSM::Parameter", {
        "Name": "/bg/dev/api-handler/image-tag",
        "Type": "String",
        "Value": "none",
    })


def test_repository_and_pipeline(dev_config):
    stack, template = synth_ecr_pipeline(dev_config)

    assert stack.repository_name == "bg-dev-api-handler"
    template.has_resource_properties("AWS::ECR::Repository", {
        "RepositoryName": "bg-dev-api-handler",
    })
    template.resource_count_is("AWS::CodePipeline::Pipeline", 1)
    template.has_resource_properties("AWS::CodePipeline::Pipeline", {
        "Name": "bg-dev-api-handler-pipeline",
        "Stages": [
            Match.object_like({"Name": "Source"}),
            Match.object_like({"Name": "Build"}),
        ],
    })
    template.has_resource_properties("AWS::Logs::LogGroup", {
        "LogGroupName": "/aws/codebuild/bg-dev-api-handler-build",
        "RetentionInDays": 30,
    })


def test_tag_published_after_push(dev_config):
    _, template = synth_ecr_pipeline(dev_config)
    build_spec = build_spec_text(template)

    push = build_spec.index("docker push")
    publish = build_spec.index("aws ssm put-parameter --name /bg/dev/api-handler/image-tag")
    assert push < publish
    assert "IMAGE_TAG" in build_spec
    # source sub-directory
    assert "cd apiFn" in build_spec


def test_build_role_can_write_tag(dev_config):
    _, template = synth_ecr_pipeline(dev_config)

    policies = json.dumps(template.find_resources("AWS::IAM::Policy"))
    assert "ssm:PutParameter" in policies


def test_cloudformation_can_read_tag(dev_config):
    _, template = synth_ecr_pipeline(dev_config)

    template.has_resource_properties("AWS::IAM::Role", {
        "AssumeRolePolicyDocument": Match.object_like({
            "Statement": [
                Match.object_like({
                    "Principal": {"Service": "cloudformation.amazonaws.com"},
                }),
            ],
        }),
        "Policies": [
            Match.object_like({"PolicyName": "ReadParameterPolicy"}),
        ],
    })


def test_no_docker_hub_no_secrets(dev_config):
    _, template = synth_ecr_pipeline(dev_config)
    build_spec = build_spec_text(template)

    assert "get-secret-value" not in build_spec
    assert "DOCKER_HUB" not in build_spec
    assert "docker logout" not in build_spec


def test_docker_hub_and_secrets():
    values = stage_config_dict("dev")
    values["api_handler"].update({
        "docker_hub": {"account": "redtype", "secret": "docker-hub-password"},
        "additional_build_env": {"FEATURE": "on"},
        "additional_build_secrets": {"API_KEY": "bg/api-key"},
    })
    config = InfrastructureConfig(**values)
    _, template = synth_ecr_pipeline(config)
    build_spec = build_spec_text(template)

    assert "--secret-id docker-hub-password" in build_spec
    assert "--secret-id bg/api-key" in build_spec
    assert "--build-arg=FEATURE=on" in build_spec
    assert "--build-arg=DOCKER_HUB_ACCOUNT=redtype" in build_spec
    assert "docker logout" in build_spec
    # secrets are referenced, never inlined
    assert "--build-arg=API_KEY=" in build_spec
    assert "--build-arg=DOCKER_HUB_SECRET" not in build_spec

    template.has_resource_properties("AWS::CodeBuild::Project", {
        "Environment": Match.object_like({
            "EnvironmentVariables": Match.array_with([
                {"Name": "DOCKER_HUB_ACCOUNT", "Type": "PLAINTEXT", "Value": "redtype"},
                {"Name": "FEATURE", "Type": "PLAINTEXT", "Value": "on"},
            ]),
        }),
    })


def test_trigger_pipelines():
    values = stage_config_dict("dev")
    values["api_handler"]["trigger_pipelines"] = ["bg-dev-worker-pipeline"]
    config = InfrastructureConfig(**values)
    _, template = synth_ecr_pipeline(config)

    assert "start-pipeline-execution --name bg-dev-worker-pipeline" in build_spec_text(template)
    template.has_resource_properties("AWS::IAM::Policy", {
        "PolicyDocument": {
            "Statement": Match.array_with([
                {
                    "Action": "codepipeline:StartPipelineExecution",
                    "Effect": "Allow",
                    "Resource": "arn:aws:codepipeline:us-east-1:123456789012:bg-dev-worker-pipeline",
                },
            ]),
        },
    })


def test_registry_and_triggers_follow_stack_environment():
    values = stage_config_dict("dev")
    values["api_handler"]["trigger_pipelines"] = ["bg-dev-worker-pipeline"]
    config = InfrastructureConfig(**values)
    stack, template = synth_ecr_pipeline(config, region="eu-west-1")
    build_spec = build_spec_text(template)

    assert stack.region == "eu-west-1"
    assert "123456789012.dkr.ecr.eu-west-1.amazonaws.com" in build_spec
    assert "dkr.ecr.us-east-1" not in build_spec

    policies = json.dumps(template.find_resources("AWS::IAM::Policy"))
    assert "arn:aws:codepipeline:eu-west-1:123456789012:bg-dev-worker-pipeline" in policies
