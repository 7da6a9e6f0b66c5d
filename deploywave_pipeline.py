# deploywave_pipeline.py
# Delivery pipeline for deploywave itself: dev first, then prod in two regions.
from __future__ import annotations
from deploywave import (
    EnvironmentConfig,
    PipelineConfig,
    RepositoryConfig,
    SynthCommands,
    env,
    pipeline,
    wave,
)

PIPELINE = PipelineConfig(
    project_name="deploywave",
    pipeline_name="deploywave-ci",
    repository=RepositoryConfig(host="github", name="deploywave/deploywave", default_branch="main"),
    repository_token_param_name="/deploywave/ci/repositoryToken",
    environments={
        "dev": EnvironmentConfig(account="111111111111", region="eu-west-1"),
        "prodEu": EnvironmentConfig(account="222222222222", region="eu-west-1"),
        "prodUs": EnvironmentConfig(account="222222222222", region="us-east-1"),
    },
    commands=SynthCommands(
        install=["pip install -e .[test]"],
        build_and_test=["pytest -q"],
        synth_pipeline=["deploywave synth --out cdk.out/pipeline.json"],
    ),
    pipeline=pipeline(
        env("dev", post=["make smoke-test"]),
        wave(
            "prod",
            "prodEu",
            env("prodUs", pre=["make check-quota"]),
            pre=["make announce-release"],
            pre_each_environment=["make migrate"],
            post_each_environment=["make smoke-test"],
            post=["make tag-release"],
        ),
    ),
)
