#!/usr/bin/env python3
import logging
from aws_cdk import App, Environment
from config.loader import ConfigLoader
from stacks.cdk_pipeline_stack import CdkPipelineStack
from stacks.pipeline_stages import add_deployment_stages

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

app = App()

project_name = app.node.try_get_context('project')
# Load configuration
config_loader = ConfigLoader(project_name)
pipeline_config = config_loader.create_pipeline_config()
stage_configs = {
    env_name.value: config_loader.create_config(env_name.value)
    for env_name in pipeline_config.stages
}

# The pipeline deploying everything else
cdk_pipeline_stack = CdkPipelineStack(
    app,
    "CdkPipeline",
    stack_name=pipeline_config.prefix("cdk-pipeline-stack"),
    env=Environment(
        account=pipeline_config.aws.account,
        region=pipeline_config.aws.region_str
    ),
    config=pipeline_config
)

add_deployment_stages(cdk_pipeline_stack, pipeline_config, stage_configs)

app.synth()
