# relay/aws.py
from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .handler import ExecutionLookupError, SecretLookupError


class CodePipelineExecutions:
    """Resolves pipeline executions to the commit they were started for."""

    def __init__(self, client: Optional[Any] = None):
        self.client = client or boto3.client("codepipeline")

    def resolve_commit(self, pipeline_name: str, execution_id: str) -> str:
        try:
            response = self.client.get_pipeline_execution(
                pipelineName=pipeline_name,
                pipelineExecutionId=execution_id,
            )
        except (ClientError, BotoCoreError) as e:
            raise ExecutionLookupError(
                f"could not get execution {execution_id} of {pipeline_name}: {e}"
            ) from e

        revisions = response.get("pipelineExecution", {}).get("artifactRevisions") or []
        # single source action: its revision is the commit
        for revision in revisions:
            if revision.get("revisionId"):
                return revision["revisionId"]
        raise ExecutionLookupError(f"execution {execution_id} of {pipeline_name} has no source revision")


class ParameterStoreSecrets:
    """Reads secrets from SSM Parameter Store. Nothing is cached."""

    def __init__(self, client: Optional[Any] = None):
        self.client = client or boto3.client("ssm")

    def get_secret(self, name: str) -> str:
        try:
            response = self.client.get_parameter(Name=name, WithDecryption=True)
        except (ClientError, BotoCoreError) as e:
            raise SecretLookupError(f"could not read parameter {name}: {e}") from e
        return response["Parameter"]["Value"]
