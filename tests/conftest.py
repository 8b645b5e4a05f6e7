import os
import sys

import pytest
import yaml

# Add the project root to path so the CDK packages import without installing
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from config.base_config import InfrastructureConfig, PipelineConfig  # noqa: E402

ACCOUNT = "123456789012"
REGION = "us-east-1"
CONNECTION_ARN = (
    "arn:aws:codeconnections:us-east-1:123456789012:connection/"
    "11111111-2222-3333-4444-555555555555"
)


def github(**overrides):
    values = {
        "connection_arn": CONNECTION_ARN,
        "owner": "RedType",
        "repo": "bg",
    }
    values.update(overrides)
    return values


def pipeline_config_dict(**overrides):
    values = {
        "project_name": "bg",
        "aws": {"account": ACCOUNT, "region": REGION},
        "dns": {"domain": "example.com"},
        "github": github(branch="deploy/cdk", path="iac"),
        "stages": ["dev", "prod"],
        "poll_period": 30,
    }
    values.update(overrides)
    return values


def stage_config_dict(env_name="dev", **overrides):
    values = {
        "project_name": "bg",
        "env_name": env_name,
        "aws": {"account": ACCOUNT, "region": REGION},
        "dns": {"domain": "example.com"},
        "manual_approval": env_name == "prod",
        "api_handler": {
            "github": github(branch=f"deploy/{env_name}/apiFn", path="apiFn"),
        },
        "frontend": {
            "github": github(path="web"),
        },
    }
    values.update(overrides)
    return values


@pytest.fixture
def pipeline_config():
    return PipelineConfig(**pipeline_config_dict())


@pytest.fixture
def dev_config():
    return InfrastructureConfig(**stage_config_dict("dev"))


@pytest.fixture
def prod_config():
    return InfrastructureConfig(**stage_config_dict("prod"))


@pytest.fixture
def config_dir(tmp_path):
    """A config directory laid out like config/ in the repository."""
    pipeline = pipeline_config_dict()
    (tmp_path / "pipeline.yaml").write_text(yaml.safe_dump(pipeline))

    environments = tmp_path / "environments"
    environments.mkdir()
    for env_name in ("dev", "prod"):
        stage = stage_config_dict(env_name)
        for shared in ("project_name", "env_name", "aws", "dns"):
            stage.pop(shared)
        (environments / f"{env_name}.yaml").write_text(yaml.safe_dump(stage))
    return tmp_path
