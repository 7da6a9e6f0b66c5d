# assembly.py
from __future__ import annotations

import json
import runpy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .binder import bind_stages
from .dsl import command_list, steps_from_dicts
from .engine import PipelineBuilder, PipelineDefinition, StateChangeHandler, SynthStep, pipeline_arn
from .expand import expand_pipeline
from .model import ConfigError, ExpandedStage, PipelineStep, StageKind
from .notifications import create_failure_notifications
from .relay.settings import REPOSITORY_HOST, REPOSITORY_NAME, REPOSITORY_TOKEN_PARAM_NAME


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class RepositoryConfig:
    host: str          # "github" | "bitbucket"
    name: str          # "owner/repo"
    default_branch: str = "main"


@dataclass(frozen=True)
class EnvironmentConfig:
    account: Optional[str] = None
    region: Optional[str] = None


@dataclass(frozen=True)
class SynthCommands:
    pre_install: List[str] = field(default_factory=list)
    install: List[str] = field(default_factory=list)
    build_and_test: List[str] = field(default_factory=list)
    synth_pipeline: List[str] = field(default_factory=lambda: ["npx cdk synth"])


@dataclass(frozen=True)
class RetryPolicy:
    """Redelivery policy of the event infrastructure invoking the status relay."""
    retry_attempts: int = 2
    max_event_age_seconds: int = 3600


@dataclass(frozen=True)
class PipelineConfig:
    project_name: str
    pipeline_name: str
    repository: RepositoryConfig
    pipeline: List[PipelineStep]
    environments: Dict[str, EnvironmentConfig] = field(default_factory=dict)
    repository_token_param_name: str = ""
    commands: SynthCommands = field(default_factory=SynthCommands)
    cdk_output_directory: str = "cdk.out"
    relay_retry: RetryPolicy = field(default_factory=RetryPolicy)

    @property
    def token_param_name(self) -> str:
        return self.repository_token_param_name or f"/{self.project_name}/ci/repositoryToken"


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in raw:
            return raw[k]
    return default


def _synth_commands(raw: Any) -> SynthCommands:
    if not isinstance(raw, Mapping):
        raise ConfigError("InvalidCommands", "'commands' must be an object", {"value": raw})
    return SynthCommands(
        pre_install=command_list(raw, "preInstall", "pre_install", where="commands", kind="InvalidCommands"),
        install=command_list(raw, "install", where="commands", kind="InvalidCommands"),
        build_and_test=command_list(raw, "buildAndTest", "build_and_test", where="commands", kind="InvalidCommands"),
        synth_pipeline=command_list(
            raw, "synthPipeline", "synth_pipeline",
            where="commands", kind="InvalidCommands", default=["npx cdk synth"],
        ),
    )


def _retry_policy(raw: Any) -> RetryPolicy:
    if not isinstance(raw, Mapping):
        raise ConfigError("InvalidRetryPolicy", "'relayRetry' must be an object", {"value": raw})
    values = {
        "retryAttempts": _pick(raw, "retryAttempts", "retry_attempts", default=2),
        "maxEventAgeSeconds": _pick(raw, "maxEventAgeSeconds", "max_event_age_seconds", default=3600),
    }
    for key, value in values.items():
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError("InvalidRetryPolicy", f"relayRetry.{key} must be an integer", {"value": value})
    return RetryPolicy(
        retry_attempts=values["retryAttempts"],
        max_event_age_seconds=values["maxEventAgeSeconds"],
    )


def config_from_dict(raw: Mapping[str, Any]) -> PipelineConfig:
    """Parse the declarative configuration (JSON object) into a PipelineConfig."""
    try:
        project_name = raw["projectName"] if "projectName" in raw else raw["project_name"]
        repo = raw["repository"]
        steps = raw["pipeline"]
    except KeyError as e:
        raise ConfigError("MissingField", f"configuration is missing {e.args[0]!r}") from None

    if not isinstance(steps, list):
        raise ConfigError("InvalidPipeline", "'pipeline' must be a list of steps")

    commands = _pick(raw, "commands", default={}) or {}
    retry = _pick(raw, "relayRetry", "relay_retry", default={}) or {}
    environments = _pick(raw, "environments", default={}) or {}

    try:
        return PipelineConfig(
            project_name=project_name,
            pipeline_name=_pick(raw, "pipelineName", "pipeline_name", default=f"{project_name}-ci"),
            repository=RepositoryConfig(
                host=repo["host"],
                name=repo["name"],
                default_branch=_pick(repo, "defaultBranch", "default_branch", default="main"),
            ),
            pipeline=steps_from_dicts(steps),
            environments={
                name: EnvironmentConfig(account=e.get("account"), region=e.get("region"))
                for name, e in environments.items()
            },
            repository_token_param_name=_pick(raw, "repositoryTokenParamName", "repository_token_param_name", default=""),
            commands=_synth_commands(commands),
            cdk_output_directory=_pick(raw, "cdkOutputDirectory", "cdk_output_directory", default="cdk.out"),
            relay_retry=_retry_policy(retry),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ConfigError("InvalidConfig", f"invalid configuration: {e}") from e


def load_pipeline(path: str | Path) -> PipelineConfig:
    """
    Load a pipeline configuration.

    Supported files:
      - *.json: the declarative configuration object
      - *.py: must define either
          - PIPELINE = PipelineConfig(...)
          - pipeline_config() -> PipelineConfig
    """
    cfg_path = Path(path).expanduser().resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {cfg_path}")

    if cfg_path.suffix == ".json":
        try:
            raw = json.loads(cfg_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError("InvalidJson", f"{cfg_path.name} is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError("InvalidConfig", f"{cfg_path.name} must contain a JSON object")
        return config_from_dict(raw)

    if cfg_path.suffix != ".py":
        raise ValueError(f"Pipeline config must be a .py or .json file, got: {cfg_path.name}")

    module_name = f"deploywave_pipeline_{cfg_path.stem}"
    globals_dict = runpy.run_path(str(cfg_path), run_name=module_name)

    config = None
    if "PIPELINE" in globals_dict:
        config = globals_dict["PIPELINE"]
    elif callable(globals_dict.get("pipeline_config")):
        config = globals_dict["pipeline_config"]()

    if isinstance(config, Mapping):
        config = config_from_dict(config)
    if not isinstance(config, PipelineConfig):
        raise TypeError(
            "Pipeline file must return/define a PipelineConfig. "
            "Define PIPELINE = PipelineConfig(...) or pipeline_config() -> PipelineConfig."
        )
    return config


# ----------------------------------------------------------------------
# Assembly
# ----------------------------------------------------------------------

STATUS_RELAY_HANDLER = "deploywave.relay.handler.lambda_handler"


def _check_environments(stages: List[ExpandedStage], environments: Mapping[str, EnvironmentConfig]) -> None:
    if not environments:
        return
    missing = sorted({
        s.environment for s in stages
        if s.kind is StageKind.ENVIRONMENT and s.environment not in environments
    })
    if missing:
        raise ConfigError(
            "UnknownEnvironment",
            "pipeline deploys to environments that are not configured",
            {"missing": missing, "configured": sorted(environments)},
        )


def synth_step(config: PipelineConfig) -> SynthStep:
    cmds = config.commands
    if not cmds.synth_pipeline:
        raise ConfigError("InvalidCommands", "commands.synthPipeline must not be empty")
    return SynthStep(
        id="Synth",
        install_commands=[*cmds.pre_install, *cmds.install],
        commands=[*cmds.build_and_test, *cmds.synth_pipeline],
        primary_output_directory=config.cdk_output_directory,
    )


def register_status_relay(builder: PipelineBuilder, config: PipelineConfig) -> StateChangeHandler:
    """
    Register the build status relay on pipeline state changes.

    The handler may read exactly one parameter (the repository token) and
    look up executions of this pipeline only.
    """
    token_param = config.token_param_name
    return builder.add_state_change_handler(StateChangeHandler(
        id="PipelineBuildStatus",
        handler=STATUS_RELAY_HANDLER,
        environment={
            REPOSITORY_HOST: config.repository.host,
            REPOSITORY_NAME: config.repository.name,
            REPOSITORY_TOKEN_PARAM_NAME: token_param,
        },
        permissions=[
            {
                "actions": ["ssm:GetParameter"],
                "resources": [f"arn:aws:ssm:${{AWS::Region}}:${{AWS::AccountId}}:parameter/{token_param.lstrip('/')}"],
            },
            {
                "actions": ["codepipeline:GetPipelineExecution"],
                "resources": [pipeline_arn(builder.name)],
            },
        ],
        retry_attempts=config.relay_retry.retry_attempts,
        max_event_age_seconds=config.relay_retry.max_event_age_seconds,
    ))


def assemble_pipeline(config: PipelineConfig) -> PipelineDefinition:
    """
    Build the full pipeline definition:
      synth -> expanded deployment stages -> status relay -> failure notifications
    Any ConfigError aborts assembly.
    """
    if config.relay_retry.retry_attempts < 0 or config.relay_retry.max_event_age_seconds <= 0:
        raise ConfigError("InvalidRetryPolicy", "retry attempts must be >= 0 and max event age > 0")

    stages = expand_pipeline(config.pipeline)
    _check_environments(stages, config.environments)

    builder = PipelineBuilder(
        config.pipeline_name,
        synth=synth_step(config),
        source={
            "repository": config.repository.name,
            "branch": config.repository.default_branch,
        },
    )
    bind_stages(builder, stages, config.environments)
    register_status_relay(builder, config)
    create_failure_notifications(builder, config.project_name)
    return builder.build()
