"""
CDK Constructs Package

This package contains reusable CDK constructs and pipeline steps.
"""

from .build_commands import DRY_RUN_TAG
from .poll_parameter_step import PollParameterStep
from .static_node_pipeline import StaticNodePipeline
from .static_website import StaticWebsite

__all__ = [
    'DRY_RUN_TAG',
    'PollParameterStep',
    'StaticNodePipeline',
    'StaticWebsite'
]
