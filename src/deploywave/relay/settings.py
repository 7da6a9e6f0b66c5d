from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from deploywave.model import ConfigError

REPOSITORY_HOST = "REPOSITORY_HOST"
REPOSITORY_NAME = "REPOSITORY_NAME"
REPOSITORY_TOKEN_PARAM_NAME = "REPOSITORY_TOKEN_PARAM_NAME"
REPOSITORY_API_URL = "REPOSITORY_API_URL"


@dataclass(frozen=True)
class RelaySettings:
    repository_host: str
    repository_name: str
    token_param_name: str
    api_url: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelaySettings:
        environ = os.environ if environ is None else environ
        missing = [
            k for k in (REPOSITORY_HOST, REPOSITORY_NAME, REPOSITORY_TOKEN_PARAM_NAME)
            if not environ.get(k)
        ]
        if missing:
            raise ConfigError("MissingSetting", "status relay is not configured", {"missing": missing})
        return cls(
            repository_host=environ[REPOSITORY_HOST],
            repository_name=environ[REPOSITORY_NAME],
            token_param_name=environ[REPOSITORY_TOKEN_PARAM_NAME],
            api_url=environ.get(REPOSITORY_API_URL) or None,
            region=environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or None,
        )
