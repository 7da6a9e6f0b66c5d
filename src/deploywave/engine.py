# engine.py
# Construction context for the pipeline-provisioning engine.
#
# Everything that happens at build time goes through a PipelineBuilder that
# is passed explicitly from call to call. The builder only records what was
# registered; the engine that consumes the resulting PipelineDefinition owns
# stage sequencing and wave concurrency.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Union

from .model import ConfigError, ShellStep

PIPELINE_EXECUTION_FAILED = "codepipeline-pipeline-pipeline-execution-failed"


# ---------------------------------------------------------------------
# Engine interface
# ---------------------------------------------------------------------

class StageTarget(Protocol):
    def add_pre(self, *steps: ShellStep) -> None: ...

    def add_post(self, *steps: ShellStep) -> None: ...


class WaveTarget(StageTarget, Protocol):
    def add_stage(
        self,
        stage_id: str,
        environment: str,
        *,
        account: Optional[str] = None,
        region: Optional[str] = None,
    ) -> StageTarget: ...


class ProvisioningEngine(Protocol):
    def add_stage(
        self,
        stage_id: str,
        environment: str,
        *,
        account: Optional[str] = None,
        region: Optional[str] = None,
    ) -> StageTarget: ...

    def add_wave(self, name: str) -> WaveTarget: ...


# ---------------------------------------------------------------------
# Registered resources
# ---------------------------------------------------------------------

@dataclass
class StageDeployment:
    """Deployment of the application stacks into one environment."""
    id: str
    environment: str
    account: Optional[str] = None
    region: Optional[str] = None
    pre: List[ShellStep] = field(default_factory=list)
    post: List[ShellStep] = field(default_factory=list)
    _claim: Callable[[str], None] = field(default=lambda _id: None, repr=False, compare=False)

    def add_pre(self, *steps: ShellStep) -> None:
        for s in steps:
            self._claim(s.id)
            self.pre.append(s)

    def add_post(self, *steps: ShellStep) -> None:
        for s in steps:
            self._claim(s.id)
            self.post.append(s)

    def to_dict(self) -> dict:
        return {
            "type": "stage",
            "id": self.id,
            "environment": self.environment,
            "account": self.account,
            "region": self.region,
            "pre": [s.to_dict() for s in self.pre],
            "post": [s.to_dict() for s in self.post],
        }


@dataclass
class Wave:
    """Stages deployed in parallel, bracketed by optional wave-level steps."""
    name: str
    stages: List[StageDeployment] = field(default_factory=list)
    pre: List[ShellStep] = field(default_factory=list)
    post: List[ShellStep] = field(default_factory=list)
    _claim: Callable[[str], None] = field(default=lambda _id: None, repr=False, compare=False)

    def add_stage(
        self,
        stage_id: str,
        environment: str,
        *,
        account: Optional[str] = None,
        region: Optional[str] = None,
    ) -> StageDeployment:
        self._claim(stage_id)
        stage = StageDeployment(stage_id, environment, account, region, _claim=self._claim)
        self.stages.append(stage)
        return stage

    def add_pre(self, *steps: ShellStep) -> None:
        for s in steps:
            self._claim(s.id)
            self.pre.append(s)

    def add_post(self, *steps: ShellStep) -> None:
        for s in steps:
            self._claim(s.id)
            self.post.append(s)

    def to_dict(self) -> dict:
        return {
            "type": "wave",
            "name": self.name,
            "pre": [s.to_dict() for s in self.pre],
            "stages": [s.to_dict() for s in self.stages],
            "post": [s.to_dict() for s in self.post],
        }


@dataclass(frozen=True)
class NotificationTopic:
    """Outbound message channel. Further subscribers may be attached by callers."""
    id: str
    topic_name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "topicName": self.topic_name}


@dataclass(frozen=True)
class NotificationRule:
    id: str
    name: str
    events: List[str]
    target: NotificationTopic

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "events": list(self.events),
            "target": self.target.id,
        }


@dataclass(frozen=True)
class StateChangeHandler:
    """
    A function invoked for every pipeline execution state change.

    retry_attempts / max_event_age_seconds are applied by the event
    infrastructure that delivers the events; the handler itself never retries.
    """
    id: str
    handler: str
    environment: Dict[str, str]
    permissions: List[Dict[str, object]]
    retry_attempts: int
    max_event_age_seconds: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "handler": self.handler,
            "environment": dict(self.environment),
            "permissions": [dict(p) for p in self.permissions],
            "retryAttempts": self.retry_attempts,
            "maxEventAgeSeconds": self.max_event_age_seconds,
        }


@dataclass(frozen=True)
class SynthStep:
    """Checks out the source, builds and tests it, and synthesizes the pipeline."""
    id: str
    install_commands: List[str]
    commands: List[str]
    primary_output_directory: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "installCommands": list(self.install_commands),
            "commands": list(self.commands),
            "primaryOutputDirectory": self.primary_output_directory,
        }


PipelineNode = Union[StageDeployment, Wave]


@dataclass(frozen=True)
class PipelineDefinition:
    """Everything registered on a builder, ready to hand to the engine."""
    name: str
    synth: Optional[SynthStep]
    source: Dict[str, str]
    nodes: List[PipelineNode]
    topics: List[NotificationTopic]
    notification_rules: List[NotificationRule]
    state_change_handlers: List[StateChangeHandler]

    @property
    def arn(self) -> str:
        return pipeline_arn(self.name)

    @property
    def failures_topic(self) -> Optional[NotificationTopic]:
        for rule in self.notification_rules:
            if PIPELINE_EXECUTION_FAILED in rule.events:
                return rule.target
        return None

    def to_dict(self) -> dict:
        failures = self.failures_topic
        return {
            "pipelineName": self.name,
            "source": dict(self.source),
            "synth": self.synth.to_dict() if self.synth else None,
            "steps": [n.to_dict() for n in self.nodes],
            "topics": [t.to_dict() for t in self.topics],
            "notificationRules": [r.to_dict() for r in self.notification_rules],
            "stateChangeHandlers": [h.to_dict() for h in self.state_change_handlers],
            "outputs": {"failuresTopic": failures.id if failures else None},
        }


def pipeline_arn(name: str) -> str:
    # account / region are resolved by the engine at deploy time
    return f"arn:aws:codepipeline:${{AWS::Region}}:${{AWS::AccountId}}:{name}"


# ---------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------

class PipelineBuilder:
    """
    In-process ProvisioningEngine.

    Construct ids are unique across the whole pipeline; registering the same
    id twice raises ConfigError.
    """

    def __init__(self, name: str, *, synth: SynthStep | None = None, source: Dict[str, str] | None = None):
        if not name or not name.strip():
            raise ConfigError("InvalidPipeline", "pipeline name must not be empty")
        self.name = name
        self.synth = synth
        self.source = dict(source or {})
        self._ids: set[str] = set()
        self._nodes: List[PipelineNode] = []
        self._waves: Dict[str, Wave] = {}
        self._topics: List[NotificationTopic] = []
        self._rules: List[NotificationRule] = []
        self._handlers: List[StateChangeHandler] = []
        if synth is not None:
            self._claim(synth.id)

    def _claim(self, construct_id: str) -> None:
        if construct_id in self._ids:
            raise ConfigError(
                "DuplicateConstruct",
                f"there is already a construct named {construct_id!r} in pipeline {self.name!r}",
            )
        self._ids.add(construct_id)

    # ---- stages ----
    def add_stage(
        self,
        stage_id: str,
        environment: str,
        *,
        account: Optional[str] = None,
        region: Optional[str] = None,
    ) -> StageDeployment:
        self._claim(stage_id)
        stage = StageDeployment(stage_id, environment, account, region, _claim=self._claim)
        self._nodes.append(stage)
        return stage

    def add_wave(self, name: str) -> Wave:
        if name in self._waves:
            raise ConfigError("DuplicateWave", f"wave {name!r} already exists in pipeline {self.name!r}")
        w = Wave(name, _claim=self._claim)
        self._waves[name] = w
        self._nodes.append(w)
        return w

    # ---- notifications / events ----
    @property
    def notification_rules(self) -> List[NotificationRule]:
        return list(self._rules)

    def add_topic(self, topic: NotificationTopic) -> NotificationTopic:
        self._claim(topic.id)
        self._topics.append(topic)
        return topic

    def add_notification_rule(self, rule: NotificationRule) -> NotificationRule:
        if any(r.name == rule.name for r in self._rules):
            raise ConfigError("DuplicateNotificationRule", f"notification rule {rule.name!r} already exists")
        if rule.target not in self._topics:
            raise ConfigError("UnknownTopic", f"notification rule {rule.name!r} targets an unregistered topic")
        self._claim(rule.id)
        self._rules.append(rule)
        return rule

    def add_state_change_handler(self, handler: StateChangeHandler) -> StateChangeHandler:
        self._claim(handler.id)
        self._handlers.append(handler)
        return handler

    def build(self) -> PipelineDefinition:
        return PipelineDefinition(
            name=self.name,
            synth=self.synth,
            source=dict(self.source),
            nodes=list(self._nodes),
            topics=list(self._topics),
            notification_rules=list(self._rules),
            state_change_handlers=list(self._handlers),
        )
