# binder.py
from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

from .engine import ProvisioningEngine, StageTarget, WaveTarget
from .model import ExpandedStage, ShellStep, StageKind


def _attach_hooks(target: StageTarget, stage: ExpandedStage) -> None:
    if stage.pre:
        target.add_pre(ShellStep(stage.pre_step_id, list(stage.pre), dict(stage.env)))
    if stage.post:
        target.add_post(ShellStep(stage.post_step_id, list(stage.post), dict(stage.env)))


def bind_stages(
    engine: ProvisioningEngine,
    stages: Sequence[ExpandedStage],
    environments: Optional[Mapping[str, object]] = None,
) -> None:
    """
    Register expanded stages with the engine, in order.

    - top-level environment stages -> engine.add_stage
    - stages of a wave -> the wave created on first sight of its name
    - wave pre/post stages -> wave.add_pre / wave.add_post

    `environments` maps environment name -> object with `account` / `region`
    (EnvironmentConfig); missing entries bind without a target account.
    Registration errors (ConfigError) propagate: they are fatal.
    """
    environments = environments or {}
    waves: Dict[str, WaveTarget] = {}

    for stage in stages:
        parent = None
        if stage.wave is not None:
            parent = waves.get(stage.wave)
            if parent is None:
                parent = waves[stage.wave] = engine.add_wave(stage.wave)

        if stage.kind is StageKind.WAVE_PRE:
            parent.add_pre(ShellStep(stage.id, list(stage.pre), dict(stage.env)))
            continue
        if stage.kind is StageKind.WAVE_POST:
            parent.add_post(ShellStep(stage.id, list(stage.post), dict(stage.env)))
            continue

        target_env = environments.get(stage.environment)
        account = getattr(target_env, "account", None)
        region = getattr(target_env, "region", None)

        container = parent if parent is not None else engine
        target = container.add_stage(stage.id, stage.environment, account=account, region=region)
        _attach_hooks(target, stage)
