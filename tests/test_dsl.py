from __future__ import annotations

import pytest

from deploywave.dsl import env, step_from_dict, steps_from_dicts, wave
from deploywave.model import ConfigError, EnvironmentDeployment, StepKind, WaveDeployment


def test_step_is_tagged_by_wave_field() -> None:
    w = step_from_dict({"wave": "prod", "environments": [{"environment": "us"}]})
    e = step_from_dict({"environment": "dev"})
    assert isinstance(w, WaveDeployment) and w.kind is StepKind.WAVE
    assert isinstance(e, EnvironmentDeployment) and e.kind is StepKind.ENVIRONMENT


def test_wave_from_dict_accepts_both_key_styles() -> None:
    camel = step_from_dict({
        "wave": "prod",
        "environments": [{"environment": "us", "pre": ["c"]}],
        "preEachEnvironment": ["a"],
        "postEachEnvironment": ["b"],
        "pre": ["start"],
        "post": ["end"],
    })
    snake = step_from_dict({
        "wave": "prod",
        "environments": [{"environment": "us", "pre": ["c"]}],
        "pre_each_environment": ["a"],
        "post_each_environment": ["b"],
        "pre": ["start"],
        "post": ["end"],
    })
    assert camel == snake
    assert camel.pre_each_environment == ["a"]
    assert camel.environments[0].pre == ["c"]


def test_missing_hooks_default_to_empty() -> None:
    (step,) = steps_from_dicts([{"environment": "dev", "pre": None}])
    assert step.pre == []
    assert step.post == []


def test_wave_without_environments_list() -> None:
    with pytest.raises(ConfigError):
        step_from_dict({"wave": "prod"})


def test_nested_wave_is_rejected() -> None:
    with pytest.raises(ConfigError) as exc:
        step_from_dict({"wave": "prod", "environments": [{"wave": "inner", "environments": []}]})
    assert "only contain environments" in exc.value.message


def test_unknown_field_is_rejected() -> None:
    with pytest.raises(ConfigError) as exc:
        step_from_dict({"environment": "dev", "preEachEnvironment": ["x"]})
    assert exc.value.kind == "UnknownField"


def test_hook_must_be_a_list() -> None:
    with pytest.raises(ConfigError) as exc:
        step_from_dict({"environment": "dev", "pre": "echo hi"})
    assert exc.value.kind == "InvalidHook"


def test_step_without_discriminator() -> None:
    with pytest.raises(ConfigError) as exc:
        step_from_dict({"name": "dev"})
    assert exc.value.kind == "InvalidStep"


def test_wave_helper_accepts_names_and_environments() -> None:
    w = wave("prod", "us", env("eu", post=["check"]), post=["tag"])
    assert [e.environment for e in w.environments] == ["us", "eu"]
    assert w.environments[1].post == ["check"]
    assert w.post == ["tag"]


def test_config_error_message() -> None:
    err = ConfigError("EmptyWave", "wave 'prod' has no environments", {"wave": "prod"})
    assert str(err) == "EmptyWave: wave 'prod' has no environments\nwave=prod"
