from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from deploywave.model import ConfigError

from .handler import (
    ExecutionLookupError,
    SecretLookupError,
    StatusRelayEvent,
    relay_state_change,
)
from .repository import StatusDeliveryError, client_for_host
from .settings import RelaySettings

app = FastAPI(title="deploywave build status relay")

# -------------------- Schemas --------------------

class StateChangeDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    pipeline: str
    execution_id: str = Field(alias="execution-id")
    state: str

class StateChangeEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    detail_type: str | None = Field(default=None, alias="detail-type")
    source: str | None = None
    detail: StateChangeDetail

class RelayResponse(BaseModel):
    relayed: bool
    report: dict[str, Any] | None = None

# -------------------- Dependencies --------------------

def get_settings() -> RelaySettings:
    try:
        return RelaySettings.from_env()
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

def get_collaborators(settings: RelaySettings = Depends(get_settings)) -> dict[str, Any]:
    # created per request: the token is read fresh every time
    from .aws import CodePipelineExecutions, ParameterStoreSecrets

    return {
        "executions": CodePipelineExecutions(),
        "secrets": ParameterStoreSecrets(),
        "repository": client_for_host(settings.repository_host, settings.repository_name, settings.api_url),
    }

# -------------------- Endpoints --------------------

@app.get("/healthz")
async def healthz():
    return {"ok": True}

@app.post("/events", response_model=RelayResponse)
def relay_event(
    event: StateChangeEvent,
    settings: RelaySettings = Depends(get_settings),
    collaborators: dict[str, Any] = Depends(get_collaborators),
):
    state_change = StatusRelayEvent(
        pipeline_name=event.detail.pipeline,
        execution_id=event.detail.execution_id,
        state=event.detail.state.upper(),
    )
    try:
        report = relay_state_change(state_change, settings=settings, **collaborators)
    except (ExecutionLookupError, SecretLookupError) as e:
        # nothing reported; the sender may redeliver
        raise HTTPException(status_code=503, detail=str(e))
    except StatusDeliveryError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return RelayResponse(relayed=report is not None, report=report.to_dict() if report else None)
