# relay/handler.py
# Sends pipeline build status back to the source repository.
#
# For every pipeline execution state change:
#   - resolve the execution id to the commit that triggered it,
#   - fetch the repository token (every invocation, so rotation is picked up),
#   - report {commit, state, pipeline} to the repository status API.
# No retries and no state between invocations: a failure is raised to the
# caller and its event infrastructure decides whether to redeliver.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Protocol

from deploywave.ui.console import get_console

from .settings import RelaySettings


class ReportedStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


STATE_STATUS = {
    "STARTED": ReportedStatus.PENDING,
    "RESUMED": ReportedStatus.PENDING,
    "SUCCEEDED": ReportedStatus.SUCCESS,
    "FAILED": ReportedStatus.FAILURE,
    "STOPPED": ReportedStatus.ERROR,
    "SUPERSEDED": ReportedStatus.ERROR,
}

STATE_DESCRIPTIONS = {
    "STARTED": "Pipeline execution started",
    "RESUMED": "Pipeline execution resumed",
    "SUCCEEDED": "Pipeline execution succeeded",
    "FAILED": "Pipeline execution failed",
    "STOPPED": "Pipeline execution stopped",
    "SUPERSEDED": "Pipeline execution superseded by a newer one",
}


class InvalidEventError(ValueError):
    """The incoming event is not a pipeline execution state change."""
    pass


class ExecutionLookupError(Exception):
    """The execution could not be resolved to a commit. Nothing was reported."""
    pass


class SecretLookupError(Exception):
    """The repository token could not be read. Nothing was reported."""
    pass


@dataclass(frozen=True)
class StatusRelayEvent:
    pipeline_name: str
    execution_id: str
    state: str

    @classmethod
    def from_event(cls, event: Mapping[str, Any]) -> StatusRelayEvent:
        """Create from an EventBridge "CodePipeline Pipeline Execution State Change" event."""
        detail = event.get("detail") if isinstance(event, Mapping) else None
        if not isinstance(detail, Mapping):
            raise InvalidEventError("event has no 'detail' object")
        try:
            return cls(
                pipeline_name=str(detail["pipeline"]),
                execution_id=str(detail["execution-id"]),
                state=str(detail["state"]).upper(),
            )
        except KeyError as e:
            raise InvalidEventError(f"event detail is missing {e.args[0]!r}") from e


@dataclass(frozen=True)
class StatusReport:
    commit_sha: str
    state: str
    reported_status: ReportedStatus
    context: str
    description: str
    target_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "commitSha": self.commit_sha,
            "state": self.state,
            "status": self.reported_status.value,
            "context": self.context,
            "description": self.description,
            "targetUrl": self.target_url,
        }


class ExecutionResolver(Protocol):
    def resolve_commit(self, pipeline_name: str, execution_id: str) -> str: ...


class SecretStore(Protocol):
    def get_secret(self, name: str) -> str: ...


class RepositoryClient(Protocol):
    def report_status(self, report: StatusReport, token: str) -> Any: ...


def execution_url(pipeline_name: str, execution_id: str, region: Optional[str]) -> Optional[str]:
    if not region:
        return None
    return (
        f"https://{region}.console.aws.amazon.com/codesuite/codepipeline/pipelines/"
        f"{pipeline_name}/executions/{execution_id}/timeline?region={region}"
    )


def relay_state_change(
    event: StatusRelayEvent,
    *,
    executions: ExecutionResolver,
    secrets: SecretStore,
    repository: RepositoryClient,
    settings: RelaySettings,
) -> Optional[StatusReport]:
    """
    Relay one state change to the repository.

    Returns the report that was sent, or None when the state is not one
    that maps to a commit status.

    Raises:
        ExecutionLookupError: the commit could not be resolved
        SecretLookupError: the repository token could not be read
        StatusDeliveryError: the repository rejected the status
    """
    console = get_console()

    status = STATE_STATUS.get(event.state)
    if status is None:
        console.print_info(f"[{event.pipeline_name}] state {event.state} not relayed")
        return None

    commit_sha = executions.resolve_commit(event.pipeline_name, event.execution_id)
    if not commit_sha:
        raise ExecutionLookupError(
            f"execution {event.execution_id} of {event.pipeline_name} has no source revision"
        )
    console.print_debug(f"[{event.pipeline_name}] execution {event.execution_id} -> commit {commit_sha}")

    report = StatusReport(
        commit_sha=commit_sha,
        state=event.state,
        reported_status=status,
        context=event.pipeline_name,
        description=STATE_DESCRIPTIONS[event.state],
        target_url=execution_url(event.pipeline_name, event.execution_id, settings.region),
    )

    token = secrets.get_secret(settings.token_param_name)
    repository.report_status(report, token)

    console.print_info(f"[{event.pipeline_name}] {commit_sha[:12]} -> {status.value} ({event.state})")
    return report


def lambda_handler(event: Mapping[str, Any], context: Any = None) -> dict:
    """Entrypoint invoked by the pipeline state-change rule."""
    from .aws import CodePipelineExecutions, ParameterStoreSecrets
    from .repository import client_for_host

    settings = RelaySettings.from_env()
    report = relay_state_change(
        StatusRelayEvent.from_event(event),
        executions=CodePipelineExecutions(),
        secrets=ParameterStoreSecrets(),
        repository=client_for_host(settings.repository_host, settings.repository_name, settings.api_url),
        settings=settings,
    )
    return {"relayed": report is not None, "report": report.to_dict() if report else None}
