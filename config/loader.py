# config/loader.py
import logging
import os
from typing import Any, Dict, Optional
import yaml
from .base_config import InfrastructureConfig, PipelineConfig

logger = logging.getLogger(__name__)

# sections of pipeline.yaml inherited by every stage, never set by a stage file
SHARED_SECTIONS = ("aws", "dns")


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge `override` into a copy of `base`, recursing into nested dicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    def __init__(self, project_name: Optional[str] = None, base_path: Optional[str] = None):
        self.project_name = project_name
        self.base_path = base_path or os.path.dirname(os.path.abspath(__file__))

    def _load_yaml(self, *parts: str) -> Dict[str, Any]:
        path = os.path.join(self.base_path, *parts)
        if not os.path.exists(path):
            raise FileNotFoundError(
                f"Configuration file not found: {path}\n"
                "Expected config/pipeline.yaml and config/environments/<env>.yaml"
            )
        logger.debug("Loading configuration from %s", path)
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def load_pipeline_config(self) -> Dict[str, Any]:
        """Load the project-wide configuration."""
        pipeline_config = self._load_yaml('pipeline.yaml')
        # the `project` context value wins over the file
        if self.project_name:
            pipeline_config['project_name'] = self.project_name
        return pipeline_config

    def load_environment_config(self, env_name: str) -> Dict[str, Any]:
        """Load the configuration of one stage from its YAML file."""
        return self._load_yaml('environments', f'{env_name}.yaml')

    def create_pipeline_config(self) -> PipelineConfig:
        """Create the CDK pipeline configuration."""
        config = PipelineConfig(**self.load_pipeline_config())
        logger.info("Loaded pipeline configuration for project %s", config.project_name)
        return config

    def create_config(self, env_name: str) -> InfrastructureConfig:
        """Create the complete configuration of one stage."""
        pipeline_config = self.load_pipeline_config()
        shared = {
            key: pipeline_config[key]
            for key in SHARED_SECTIONS
            if key in pipeline_config
        }
        shared['project_name'] = pipeline_config.get('project_name')

        stage_config = self.load_environment_config(env_name)
        overridden = [key for key in SHARED_SECTIONS if key in stage_config]
        if overridden:
            # stages deploy next to the DNS stack and read its parameters
            raise ValueError(
                f"environments/{env_name}.yaml may not set {', '.join(overridden)}: "
                "these sections are shared by all stages and belong in pipeline.yaml"
            )

        # Merge shared sections and stage configuration
        config = deep_merge(shared, stage_config)
        config['env_name'] = env_name

        infrastructure_config = InfrastructureConfig(**config)
        logger.info("Loaded %s configuration for project %s", env_name, infrastructure_config.project_name)
        return infrastructure_config
