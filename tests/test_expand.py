from __future__ import annotations

import pytest

from deploywave.dsl import env, pipeline, steps_from_dicts, wave
from deploywave.expand import concurrent_groups, expand_pipeline
from deploywave.model import ConfigError, EnvironmentDeployment, StageKind, WaveDeployment


def test_wave_hooks_bracket_environment_hooks() -> None:
    stages = expand_pipeline([
        wave("w", env("x", pre=["C"], post=["D"]), pre_each_environment=["A"], post_each_environment=["B"]),
    ])
    assert len(stages) == 1
    assert stages[0].pre == ["A", "C"]
    assert stages[0].post == ["D", "B"]


def test_single_environment_keeps_its_hooks() -> None:
    (stage,) = expand_pipeline([env("dev", pre=["p1", "p2"], post=["q"])])
    assert stage.kind is StageKind.ENVIRONMENT
    assert stage.id == "DeployEnvDev"
    assert stage.pre == ["p1", "p2"]
    assert stage.post == ["q"]
    assert stage.env == {"ENV_NAME": "dev"}
    assert stage.wave is None
    assert not stage.concurrent


def test_dev_then_prod_wave_scenario() -> None:
    steps = steps_from_dicts([
        {"environment": "dev"},
        {
            "wave": "prod",
            "environments": [{"environment": "us"}, {"environment": "eu"}],
            "preEachEnvironment": ["echo pre"],
        },
    ])
    stages = expand_pipeline(steps)

    assert [s.environment for s in stages] == ["dev", "us", "eu"]
    dev, us, eu = stages
    assert dev.pre == [] and dev.post == []
    assert us.pre == ["echo pre"]
    assert eu.pre == ["echo pre"]
    assert not dev.concurrent
    assert us.concurrent and eu.concurrent
    assert us.env == {"WAVE_NAME": "prod", "ENV_NAME": "us"}

    levels = concurrent_groups(stages)
    assert [[s.environment for s in level] for level in levels] == [["dev"], ["us", "eu"]]


def test_stage_count_matches_declaration() -> None:
    steps = pipeline(
        env("dev"),
        wave("staging", "s1", "s2", "s3"),
        env("qa"),
        wave("prod", "us", "eu", pre=["announce"], post=["tag"]),
        wave("dr", "ap", post=["verify"]),
    )
    stages = expand_pipeline(steps)
    # 2 single envs + 6 wave envs + 1 non-empty pre + 2 non-empty post
    assert len(stages) == 2 + 6 + 1 + 2


def test_wave_pre_and_post_surround_environments() -> None:
    stages = expand_pipeline([
        env("dev"),
        wave("prod", "us", "eu", pre=["announce"], post=["tag"]),
        env("audit"),
    ])
    assert [(s.kind, s.environment) for s in stages] == [
        (StageKind.ENVIRONMENT, "dev"),
        (StageKind.WAVE_PRE, None),
        (StageKind.ENVIRONMENT, "us"),
        (StageKind.ENVIRONMENT, "eu"),
        (StageKind.WAVE_POST, None),
        (StageKind.ENVIRONMENT, "audit"),
    ]
    pre, post = stages[1], stages[4]
    assert pre.id == "PreWaveProd"
    assert pre.pre == ["announce"]
    assert pre.env == {"WAVE_NAME": "prod"}
    assert post.id == "PostWaveProd"
    assert post.post == ["tag"]
    assert post.env == {"WAVE_NAME": "prod"}

    levels = concurrent_groups(stages)
    assert [len(level) for level in levels] == [1, 1, 2, 1, 1]


def test_wave_stage_ids_are_prefixed() -> None:
    stages = expand_pipeline([wave("prod", env("euWest", pre=["x"], post=["y"]))])
    (stage,) = stages
    assert stage.id == "WaveProdDeployEnvEuWest"
    assert stage.pre_step_id == "WaveProdPreEnvEuWest"
    assert stage.post_step_id == "WaveProdPostEnvEuWest"


def test_env_name_set_without_hooks() -> None:
    stages = expand_pipeline([wave("prod", "us")])
    assert stages[0].env["ENV_NAME"] == "us"


def test_empty_wave_fails_fast() -> None:
    with pytest.raises(ConfigError) as exc:
        expand_pipeline([WaveDeployment(wave="prod", environments=[])])
    assert exc.value.kind == "EmptyWave"


def test_empty_pipeline_is_rejected() -> None:
    with pytest.raises(ConfigError) as exc:
        expand_pipeline([])
    assert exc.value.kind == "EmptyPipeline"


def test_duplicate_environment_in_wave() -> None:
    with pytest.raises(ConfigError) as exc:
        expand_pipeline([wave("prod", "us", "eu", "us")])
    assert exc.value.kind == "DuplicateEnvironment"
    assert exc.value.details["duplicates"] == ["us"]


def test_duplicate_wave_name() -> None:
    with pytest.raises(ConfigError) as exc:
        expand_pipeline([wave("prod", "us"), wave("prod", "eu")])
    assert exc.value.kind == "DuplicateWave"


def test_duplicate_top_level_environment() -> None:
    with pytest.raises(ConfigError) as exc:
        expand_pipeline([env("dev"), env("dev")])
    assert exc.value.kind == "DuplicateStage"


def test_same_environment_in_different_waves_is_allowed() -> None:
    stages = expand_pipeline([wave("canary", "us"), wave("prod", "us")])
    assert [s.id for s in stages] == ["WaveCanaryDeployEnvUs", "WaveProdDeployEnvUs"]


def test_empty_names_are_rejected() -> None:
    with pytest.raises(ConfigError):
        expand_pipeline([env("")])
    with pytest.raises(ConfigError):
        expand_pipeline([wave(" ", "us")])


def test_blank_hook_command_is_rejected() -> None:
    with pytest.raises(ConfigError) as exc:
        expand_pipeline([env("dev", pre=["  "])])
    assert exc.value.kind == "InvalidHook"


def test_unknown_step_type() -> None:
    with pytest.raises(TypeError):
        expand_pipeline([{"environment": "dev"}])  # type: ignore[list-item]


def test_expansion_does_not_mutate_declarations() -> None:
    inner = EnvironmentDeployment("us", pre=["c"], post=["d"])
    w = WaveDeployment("prod", [inner], pre_each_environment=["a"], post_each_environment=["b"])
    expand_pipeline([w])
    expand_pipeline([w])
    assert inner.pre == ["c"]
    assert inner.post == ["d"]
