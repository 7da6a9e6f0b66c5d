from .dsl import env, wave, pipeline
from .expand import expand_pipeline
from .model import ConfigError, EnvironmentDeployment, WaveDeployment, ExpandedStage
from .assembly import (
    PipelineConfig,
    RepositoryConfig,
    EnvironmentConfig,
    SynthCommands,
    RetryPolicy,
    assemble_pipeline,
    load_pipeline,
)

__all__ = [
    "env", "wave", "pipeline", "expand_pipeline",
    "ConfigError", "EnvironmentDeployment", "WaveDeployment", "ExpandedStage",
    "PipelineConfig", "RepositoryConfig", "EnvironmentConfig", "SynthCommands", "RetryPolicy",
    "assemble_pipeline", "load_pipeline",
]
