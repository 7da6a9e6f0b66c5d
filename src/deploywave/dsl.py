# dsl.py
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .model import ConfigError, EnvironmentDeployment, PipelineStep, WaveDeployment


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def env(
    name: str,
    *,
    pre: Optional[List[str]] = None,
    post: Optional[List[str]] = None,
) -> EnvironmentDeployment:
    """Deploy to a single environment."""
    return EnvironmentDeployment(environment=name, pre=list(pre or []), post=list(post or []))


def wave(
    name: str,
    *environments: EnvironmentDeployment | str,  # allow: wave("prod", "us", env("eu", pre=[...]))
    pre: Optional[List[str]] = None,
    post: Optional[List[str]] = None,
    pre_each_environment: Optional[List[str]] = None,
    post_each_environment: Optional[List[str]] = None,
) -> WaveDeployment:
    """Deploy several environments in parallel as one named wave."""
    envs = [e if isinstance(e, EnvironmentDeployment) else env(e) for e in environments]
    return WaveDeployment(
        wave=name,
        environments=envs,
        pre=list(pre or []),
        post=list(post or []),
        pre_each_environment=list(pre_each_environment or []),
        post_each_environment=list(post_each_environment or []),
    )


def pipeline(*steps: PipelineStep) -> List[PipelineStep]:
    """
    Pipeline definition helper.

        from deploywave import PipelineConfig, RepositoryConfig, env, pipeline, wave

        PIPELINE = PipelineConfig(
            project_name="shop",
            pipeline_name="shop-ci",
            repository=RepositoryConfig(host="github", name="acme/shop"),
            pipeline=pipeline(
                env("dev"),
                wave("prod", "us", "eu", pre_each_environment=["make smoke"]),
            ),
        )
    """
    return list(steps)


# ---------------------------------------------------------------------
# Declarative (dict / JSON) surface
# ---------------------------------------------------------------------

_ENVIRONMENT_KEYS = {"environment", "pre", "post"}
_WAVE_KEYS = {
    "wave", "environments", "pre", "post",
    "preEachEnvironment", "postEachEnvironment",
    "pre_each_environment", "post_each_environment",
}


def command_list(
    raw: Mapping[str, Any],
    *keys: str,
    where: str,
    kind: str = "InvalidHook",
    default: Optional[List[str]] = None,
) -> List[str]:
    """Read the first present key as a list of shell commands; a bare string is rejected."""
    for key in keys:
        if key in raw and raw[key] is not None:
            value = raw[key]
            if isinstance(value, str) or not isinstance(value, Sequence):
                raise ConfigError(
                    kind,
                    f"{where}: '{key}' must be a list of commands",
                    {"value": value},
                )
            if not all(isinstance(c, str) for c in value):
                raise ConfigError(kind, f"{where}: every command in '{key}' must be a string")
            return list(value)
    return list(default or [])


def _check_keys(raw: Mapping[str, Any], allowed: set[str], where: str) -> None:
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ConfigError("UnknownField", f"{where}: unknown field(s) {unknown}", {"allowed": sorted(allowed)})


def environment_from_dict(raw: Mapping[str, Any]) -> EnvironmentDeployment:
    name = raw.get("environment")
    where = f"environment {name!r}"
    if not isinstance(name, str):
        raise ConfigError("InvalidEnvironment", "environment name must be a string", {"value": name})
    _check_keys(raw, _ENVIRONMENT_KEYS, where)
    return EnvironmentDeployment(
        environment=name,
        pre=command_list(raw, "pre", where=where),
        post=command_list(raw, "post", where=where),
    )


def wave_from_dict(raw: Mapping[str, Any]) -> WaveDeployment:
    name = raw.get("wave")
    where = f"wave {name!r}"
    if not isinstance(name, str):
        raise ConfigError("InvalidWave", "wave name must be a string", {"value": name})
    _check_keys(raw, _WAVE_KEYS, where)

    environments = raw.get("environments")
    if not isinstance(environments, list):
        raise ConfigError("InvalidWave", f"{where}: 'environments' must be a list")
    for item in environments:
        if not isinstance(item, Mapping) or "wave" in item:
            # strictly two levels: a wave only holds environments
            raise ConfigError("InvalidWave", f"{where}: waves can only contain environments", {"value": item})

    return WaveDeployment(
        wave=name,
        environments=[environment_from_dict(e) for e in environments],
        pre=command_list(raw, "pre", where=where),
        post=command_list(raw, "post", where=where),
        pre_each_environment=command_list(raw, "preEachEnvironment", "pre_each_environment", where=where),
        post_each_environment=command_list(raw, "postEachEnvironment", "post_each_environment", where=where),
    )


def step_from_dict(raw: Mapping[str, Any]) -> PipelineStep:
    """Tag a raw declaration: anything with a `wave` key is a wave."""
    if not isinstance(raw, Mapping):
        raise ConfigError("InvalidStep", "pipeline steps must be objects", {"value": raw})
    if "wave" in raw:
        return wave_from_dict(raw)
    if "environment" in raw:
        return environment_from_dict(raw)
    raise ConfigError("InvalidStep", "step needs either a 'wave' or an 'environment' field", {"value": dict(raw)})


def steps_from_dicts(raw_steps: Iterable[Mapping[str, Any]]) -> List[PipelineStep]:
    return [step_from_dict(r) for r in raw_steps]

