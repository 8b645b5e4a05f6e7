import pytest

from cdk_constructs.build_commands import DRY_RUN_TAG, poll_parameter_commands
from cdk_constructs.poll_parameter_step import PollParameterStep

PARAMETER = "/bg/dev/api-handler/image-tag"
PARAMETER_ARN = "arn:aws:ssm:us-east-1:123456789012:parameter/bg/dev/api-handler/image-tag"


def test_step_runs_the_poll_loop():
    step = PollParameterStep(
        "WaitForImages",
        parameter=PARAMETER,
        until_not=DRY_RUN_TAG,
        poll_period=10,
        max_attempts=60,
    )

    assert step.id == "WaitForImages"
    assert step.parameter == PARAMETER
    assert step.commands == poll_parameter_commands(
        PARAMETER, until_not=DRY_RUN_TAG, poll_period=10, max_attempts=60
    )


def test_step_can_read_the_parameter():
    step = PollParameterStep(
        "WaitForImages",
        parameter=PARAMETER,
        until_not=DRY_RUN_TAG,
        parameter_arn=PARAMETER_ARN,
    )

    statements = step.role_policy_statements
    assert len(statements) == 1
    assert statements[0].actions == ["ssm:GetParameter", "ssm:GetParameters"]
    assert statements[0].resources == [PARAMETER_ARN]


def test_step_without_arn_adds_no_policy():
    step = PollParameterStep("WaitForImages", parameter=PARAMETER, until="abc1234")
    assert not step.role_policy_statements


def test_step_requires_a_condition():
    with pytest.raises(ValueError, match="One of `until` or `until_not`"):
        PollParameterStep("WaitForImages", parameter=PARAMETER)


def test_step_rejects_both_conditions():
    with pytest.raises(ValueError, match="Only one of"):
        PollParameterStep("WaitForImages", parameter=PARAMETER, until="a", until_not="b")
