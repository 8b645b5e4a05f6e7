"""
Shell commands run by the CodeBuild projects of the pipelines.

An image build pipeline publishes the tag of the image it pushed into an SSM
String parameter. The parameter is created holding DRY_RUN_TAG, so anything
waiting on it can tell "no image yet" from a real tag. The deploy pipeline
polls the parameter (see poll_parameter_commands) before deploying the
stacks that read it.
"""

import shlex
from typing import Dict, Iterable, List, Optional

# value of an image tag parameter before the first successful build
DRY_RUN_TAG = "none"

DEFAULT_POLL_PERIOD = 30  # seconds


def cd_commands(path: Optional[str]) -> List[str]:
    return [f"cd {shlex.quote(path)}"] if path else []


def docker_build_args(build_env: Dict[str, str], secret_keys: Iterable[str] = ()) -> str:
    """
    Render `docker build` arguments for the build environment.

    Plain variables are passed by value. Secrets are passed by reference to the
    shell variable holding them: they must stay ARGs (never ENV) so they are
    not baked into the image.
    """
    args = [f"--build-arg={key}={shlex.quote(value)}" for key, value in build_env.items()]
    args += [f'--build-arg={key}="${key}"' for key in secret_keys]
    return " ".join(args)


def fetch_secret_commands(secrets: Dict[str, str]) -> List[str]:
    """Read each secret (env name -> Secrets Manager id) into a shell variable."""
    return [
        f'{key}="$(aws secretsmanager get-secret-value'
        f' --secret-id {shlex.quote(secret_id)}'
        ' --query SecretString --output text)"'
        for key, secret_id in secrets.items()
    ]


def image_tag_commands() -> List[str]:
    # short commit hash, `latest` when the source version is unknown
    return [
        'COMMIT_HASH="$(echo $CODEBUILD_RESOLVED_SOURCE_VERSION | cut -c 1-7)"',
        'IMAGE_TAG="${COMMIT_HASH:=latest}"',
    ]


def ecr_login_command(account: str, region: str) -> str:
    return (
        f'aws ecr get-login-password --region "{region}"'
        ' | docker login --username AWS --password-stdin'
        f' "{account}.dkr.ecr.{region}.amazonaws.com"'
    )


def put_parameter_command(name: str, value: str = '"$IMAGE_TAG"') -> str:
    return f"aws ssm put-parameter --name {shlex.quote(name)} --value {value} --overwrite"


def start_pipeline_commands(pipeline_names: Iterable[str]) -> List[str]:
    return [
        f"aws codepipeline start-pipeline-execution --name {shlex.quote(name)}"
        for name in pipeline_names
    ]


def poll_parameter_commands(
    parameter: str,
    until: Optional[str] = None,
    until_not: Optional[str] = None,
    poll_period: int = DEFAULT_POLL_PERIOD,
    max_attempts: Optional[int] = None,
) -> List[str]:
    """
    Build a POSIX sh loop waiting on the value of an SSM parameter.

    The loop exits 0 once the value equals `until`, or differs from
    `until_not`. A failed read yields an empty value, which never satisfies
    the condition. With `max_attempts`, the loop exits 1 after that many
    unsatisfied reads.

    The loop is returned as a single command: CodeBuild runs each command on
    its own, so a compound statement cannot span several of them.
    """
    if not until and not until_not:
        raise ValueError("One of `until` or `until_not` must be given")
    if until and until_not:
        raise ValueError("Only one of `until` or `until_not` may be given")
    if poll_period < 1:
        raise ValueError(f"poll_period must be at least 1 second, got {poll_period}")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    oper = "=" if until else "!="
    target = shlex.quote(until or until_not)
    name = shlex.quote(parameter)

    fetch = (
        f'PARAM_VALUE="$(aws ssm get-parameter --name {name}'
        ' --query Parameter.Value --output text)" || PARAM_VALUE=""'
    )
    condition = f'[ -n "$PARAM_VALUE" ] && [ "$PARAM_VALUE" {oper} {target} ]'

    steps = [
        "ATTEMPT=0",
        "while true",
        f"do {fetch}",
        f'if {condition}; then echo "{parameter} is $PARAM_VALUE"; break; fi',
        "ATTEMPT=$((ATTEMPT + 1))",
    ]
    if max_attempts is not None:
        steps.append(
            f'if [ "$ATTEMPT" -ge {max_attempts} ]; then'
            f' echo "Gave up waiting on {parameter} after $ATTEMPT attempts" >&2; exit 1; fi'
        )
    steps += [
        f'echo "Waiting on {parameter} (value: $PARAM_VALUE)"',
        f"sleep {poll_period}",
        "done",
    ]
    return ["; ".join(steps)]
