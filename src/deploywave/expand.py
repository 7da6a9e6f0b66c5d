# expand.py
from __future__ import annotations

from typing import Dict, List, Sequence, Set

from .model import (
    ConfigError,
    EnvironmentDeployment,
    ExpandedStage,
    PipelineStep,
    StageKind,
    WaveDeployment,
    capitalize,
)


def _check_commands(commands: Sequence[str], where: str) -> None:
    for cmd in commands:
        if not isinstance(cmd, str) or not cmd.strip():
            raise ConfigError("InvalidHook", f"{where}: hook commands must be non-empty strings", {"value": cmd})


def _check_name(name: str, what: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Empty{capitalize(what)}Name", f"{what} name must not be empty", {"value": name})


def _environment_stage(
    step: EnvironmentDeployment,
    wave: WaveDeployment | None = None,
) -> ExpandedStage:
    _check_name(step.environment, "environment")

    if wave is None:
        pre = list(step.pre)
        post = list(step.post)
        env = {"ENV_NAME": step.environment}
        stage_id = f"DeployEnv{capitalize(step.environment)}"
    else:
        # wave hooks bracket environment hooks
        pre = [*wave.pre_each_environment, *step.pre]
        post = [*step.post, *wave.post_each_environment]
        env = {"WAVE_NAME": wave.wave, "ENV_NAME": step.environment}
        stage_id = f"Wave{capitalize(wave.wave)}DeployEnv{capitalize(step.environment)}"

    _check_commands(pre, f"environment {step.environment!r}")
    _check_commands(post, f"environment {step.environment!r}")

    return ExpandedStage(
        kind=StageKind.ENVIRONMENT,
        id=stage_id,
        environment=step.environment,
        wave=None if wave is None else wave.wave,
        pre=pre,
        post=post,
        env=env,
    )


def _wave_stages(step: WaveDeployment) -> List[ExpandedStage]:
    _check_name(step.wave, "wave")
    if not step.environments:
        raise ConfigError("EmptyWave", f"wave {step.wave!r} has no environments")

    names = [e.environment for e in step.environments]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigError(
            "DuplicateEnvironment",
            f"wave {step.wave!r} lists the same environment more than once",
            {"duplicates": dupes},
        )

    stages: List[ExpandedStage] = []
    wave_env = {"WAVE_NAME": step.wave}

    if step.pre:
        _check_commands(step.pre, f"wave {step.wave!r}")
        stages.append(ExpandedStage(
            kind=StageKind.WAVE_PRE,
            id=f"PreWave{capitalize(step.wave)}",
            environment=None,
            wave=step.wave,
            pre=list(step.pre),
            env=dict(wave_env),
        ))

    stages.extend(_environment_stage(e, step) for e in step.environments)

    if step.post:
        _check_commands(step.post, f"wave {step.wave!r}")
        stages.append(ExpandedStage(
            kind=StageKind.WAVE_POST,
            id=f"PostWave{capitalize(step.wave)}",
            environment=None,
            wave=step.wave,
            post=list(step.post),
            env=dict(wave_env),
        ))

    return stages


def expand_pipeline(steps: Sequence[PipelineStep]) -> List[ExpandedStage]:
    """
    Expand declared pipeline steps into an ordered list of stages.

    - Top-level order is preserved; waves expand in place.
    - Inside a wave: optional wave pre stage, one stage per environment
      (declaration order), optional wave post stage.
    - Raises ConfigError on any invalid declaration. Nothing here does I/O.
    """
    if not steps:
        raise ConfigError("EmptyPipeline", "pipeline must declare at least one wave or environment")

    stages: List[ExpandedStage] = []
    seen_waves: Set[str] = set()

    for step in steps:
        if isinstance(step, WaveDeployment):
            if step.wave in seen_waves:
                raise ConfigError("DuplicateWave", f"wave {step.wave!r} is declared more than once")
            seen_waves.add(step.wave)
            stages.extend(_wave_stages(step))
        elif isinstance(step, EnvironmentDeployment):
            stages.append(_environment_stage(step))
        else:
            raise TypeError(f"Unknown pipeline step: {step!r}")

    ids: Dict[str, int] = {}
    for s in stages:
        ids[s.id] = ids.get(s.id, 0) + 1
    dupes = sorted(i for i, n in ids.items() if n > 1)
    if dupes:
        raise ConfigError("DuplicateStage", "pipeline would contain duplicate stages", {"stages": dupes})

    return stages


def concurrent_groups(stages: Sequence[ExpandedStage]) -> List[List[ExpandedStage]]:
    """
    Group stages into execution levels.
    Each level runs after the previous one succeeded; stages inside one level
    run in parallel (the environments of one wave).
    """
    levels: List[List[ExpandedStage]] = []
    for stage in stages:
        if stage.concurrent and levels and levels[-1][0].concurrent and levels[-1][0].wave == stage.wave:
            levels[-1].append(stage)
        else:
            levels.append([stage])
    return levels
