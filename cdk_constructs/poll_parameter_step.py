from typing import Optional
from aws_cdk import pipelines
from aws_cdk import aws_iam as iam
from .build_commands import DEFAULT_POLL_PERIOD, poll_parameter_commands


class PollParameterStep(pipelines.CodeBuildStep):
    """
    Pipeline step blocking until an SSM parameter reaches a value.

    Exactly one of `until` (wait for the value) or `until_not` (wait for any
    other value) must be given. When `parameter_arn` is given, the step role
    is allowed to read the parameter.
    """

    def __init__(self,
                 id: str,
                 parameter: str,
                 until: Optional[str] = None,
                 until_not: Optional[str] = None,
                 poll_period: int = DEFAULT_POLL_PERIOD,
                 max_attempts: Optional[int] = None,
                 parameter_arn: Optional[str] = None,
                 **kwargs) -> None:
        commands = poll_parameter_commands(
            parameter,
            until=until,
            until_not=until_not,
            poll_period=poll_period,
            max_attempts=max_attempts,
        )

        role_policy_statements = list(kwargs.pop("role_policy_statements", None) or [])
        if parameter_arn:
            role_policy_statements.append(iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ssm:GetParameter", "ssm:GetParameters"],
                resources=[parameter_arn]
            ))

        super().__init__(
            id,
            commands=commands,
            role_policy_statements=role_policy_statements or None,
            **kwargs
        )
        self.parameter = parameter
