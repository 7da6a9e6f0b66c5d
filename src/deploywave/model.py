# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Union


class StepKind(str, Enum):
    WAVE = "wave"
    ENVIRONMENT = "environment"


class StageKind(str, Enum):
    ENVIRONMENT = "environment"
    WAVE_PRE = "wave_pre"
    WAVE_POST = "wave_post"


@dataclass
class ConfigError(Exception):
    """
    Build-time configuration error.

    Always fatal: assembly stops and nothing is bound to the engine.
    """
    kind: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass(frozen=True)
class EnvironmentDeployment:
    """Deployment of the application stacks to one environment."""
    environment: str
    pre: List[str] = field(default_factory=list)
    post: List[str] = field(default_factory=list)

    kind: ClassVar[StepKind] = StepKind.ENVIRONMENT


@dataclass(frozen=True)
class WaveDeployment:
    """
    A named group of environments deployed in parallel.

    `pre` / `post` run once for the whole wave,
    `pre_each_environment` / `post_each_environment` are inherited by
    every environment in it.
    """
    wave: str
    environments: List[EnvironmentDeployment]
    pre: List[str] = field(default_factory=list)
    post: List[str] = field(default_factory=list)
    pre_each_environment: List[str] = field(default_factory=list)
    post_each_environment: List[str] = field(default_factory=list)

    kind: ClassVar[StepKind] = StepKind.WAVE


PipelineStep = Union[WaveDeployment, EnvironmentDeployment]


@dataclass(frozen=True)
class ExpandedStage:
    """One unit of pipeline execution produced by the expander."""
    kind: StageKind
    id: str
    environment: Optional[str]
    wave: Optional[str]
    pre: List[str] = field(default_factory=list)
    post: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def concurrent(self) -> bool:
        # environments of the same wave run side by side
        return self.kind is StageKind.ENVIRONMENT and self.wave is not None

    @property
    def id_prefix(self) -> str:
        return f"Wave{capitalize(self.wave)}" if self.wave is not None else ""

    @property
    def pre_step_id(self) -> str:
        if self.kind is StageKind.ENVIRONMENT:
            return f"{self.id_prefix}PreEnv{capitalize(self.environment)}"
        return self.id

    @property
    def post_step_id(self) -> str:
        if self.kind is StageKind.ENVIRONMENT:
            return f"{self.id_prefix}PostEnv{capitalize(self.environment)}"
        return self.id


@dataclass(frozen=True)
class ShellStep:
    """A block of shell commands run before or after a stage."""
    id: str
    commands: List[str]
    env: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"id": self.id, "commands": list(self.commands), "env": dict(self.env)}


def capitalize(value: Optional[str]) -> str:
    """Upper-case the first letter only ("prodEu" -> "ProdEu")."""
    if not value:
        return ""
    return value[0].upper() + value[1:]
