# relay/repository.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Optional
from urllib.parse import quote, urljoin

from deploywave.model import ConfigError

from .handler import ReportedStatus, StatusReport


class StatusDeliveryError(Exception):
    """Raised when the repository does not accept a commit status."""
    pass


class StatusClient:
    """Base HTTP client for a repository commit-status API."""

    default_api_url = ""

    def __init__(self, repository_name: str, api_url: Optional[str] = None):
        """
        Args:
            repository_name: "owner/repo" (GitHub) or "workspace/repo" (Bitbucket)
            api_url: Override the API base URL (self-hosted installations)
        """
        self.repository_name = repository_name
        self.base_url = (api_url or self.default_api_url).rstrip("/")

    def _request(self, method: str, path: str, data: dict, token: str) -> dict:
        url = urljoin(self.base_url + "/", path.lstrip("/"))

        req_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
        }
        req_data = json.dumps(data).encode("utf-8")
        req = urllib.request.Request(url, data=req_data, headers=req_headers, method=method)

        try:
            with urllib.request.urlopen(req) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise StatusDeliveryError(f"Status request failed: {e.code} {e.reason}. {error_body}") from e
        except urllib.error.URLError as e:
            raise StatusDeliveryError(f"Network error: {e.reason}") from e
        except json.JSONDecodeError as e:
            raise StatusDeliveryError(f"Invalid JSON response: {e}") from e

    def payload(self, report: StatusReport) -> dict:
        raise NotImplementedError

    def path(self, report: StatusReport) -> str:
        raise NotImplementedError

    def report_status(self, report: StatusReport, token: str) -> dict:
        """Send one commit status. The repository keeps the last write per commit and context."""
        return self._request("POST", self.path(report), self.payload(report), token)


class GitHubStatusClient(StatusClient):
    default_api_url = "https://api.github.com"

    def path(self, report: StatusReport) -> str:
        return f"/repos/{self.repository_name}/statuses/{quote(report.commit_sha)}"

    def payload(self, report: StatusReport) -> dict:
        data = {
            "state": report.reported_status.value,
            "context": report.context,
            "description": report.description,
        }
        if report.target_url:
            data["target_url"] = report.target_url
        return data


BITBUCKET_STATES = {
    ReportedStatus.PENDING: "INPROGRESS",
    ReportedStatus.SUCCESS: "SUCCESSFUL",
    ReportedStatus.FAILURE: "FAILED",
    ReportedStatus.ERROR: "STOPPED",
}


class BitbucketStatusClient(StatusClient):
    default_api_url = "https://api.bitbucket.org"

    def path(self, report: StatusReport) -> str:
        return f"/2.0/repositories/{self.repository_name}/commit/{quote(report.commit_sha)}/statuses/build"

    def payload(self, report: StatusReport) -> dict:
        data = {
            # key identifies the status; same key overwrites
            "key": report.context,
            "name": report.context,
            "state": BITBUCKET_STATES[report.reported_status],
            "description": report.description,
        }
        if report.target_url:
            data["url"] = report.target_url
        return data


CLIENTS = {
    "github": GitHubStatusClient,
    "bitbucket": BitbucketStatusClient,
}


def client_for_host(host: str, repository_name: str, api_url: Optional[str] = None) -> StatusClient:
    try:
        cls = CLIENTS[host.lower()]
    except KeyError:
        raise ConfigError(
            "UnknownRepositoryHost",
            f"unsupported repository host {host!r}",
            {"supported": sorted(CLIENTS)},
        ) from None
    return cls(repository_name, api_url=api_url)
