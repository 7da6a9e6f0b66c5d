from __future__ import annotations

import io
import json
import urllib.error
import urllib.request

import pytest

from deploywave.model import ConfigError
from deploywave.relay.handler import ReportedStatus, StatusReport
from deploywave.relay.repository import (
    BitbucketStatusClient,
    GitHubStatusClient,
    StatusDeliveryError,
    client_for_host,
)

REPORT = StatusReport(
    commit_sha="abc123",
    state="SUCCEEDED",
    reported_status=ReportedStatus.SUCCESS,
    context="shop-ci",
    description="Pipeline execution succeeded",
    target_url="https://example.com/exec-1",
)


class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


@pytest.fixture
def captured(monkeypatch):
    requests = []

    def fake_urlopen(req):
        requests.append(req)
        return FakeResponse(b'{"id": 1}')

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    return requests


def test_github_status(captured) -> None:
    result = GitHubStatusClient("acme/shop").report_status(REPORT, "s3cret")
    (req,) = captured

    assert result == {"id": 1}
    assert req.get_method() == "POST"
    assert req.full_url == "https://api.github.com/repos/acme/shop/statuses/abc123"
    assert req.get_header("Authorization") == "Bearer s3cret"
    assert json.loads(req.data) == {
        "state": "success",
        "context": "shop-ci",
        "description": "Pipeline execution succeeded",
        "target_url": "https://example.com/exec-1",
    }


def test_bitbucket_status(captured) -> None:
    BitbucketStatusClient("acme/shop").report_status(REPORT, "s3cret")
    (req,) = captured

    assert req.full_url == "https://api.bitbucket.org/2.0/repositories/acme/shop/commit/abc123/statuses/build"
    assert json.loads(req.data) == {
        "key": "shop-ci",
        "name": "shop-ci",
        "state": "SUCCESSFUL",
        "description": "Pipeline execution succeeded",
        "url": "https://example.com/exec-1",
    }


def test_api_url_override(captured) -> None:
    client = client_for_host("GitHub", "acme/shop", api_url="https://git.acme.internal/api/v3/")
    client.report_status(REPORT, "s3cret")
    assert captured[0].full_url == "https://git.acme.internal/api/v3/repos/acme/shop/statuses/abc123"


def test_http_error_becomes_delivery_error(monkeypatch) -> None:
    def fake_urlopen(req):
        raise urllib.error.HTTPError(req.full_url, 422, "Unprocessable Entity", {}, io.BytesIO(b"bad sha"))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(StatusDeliveryError) as exc:
        GitHubStatusClient("acme/shop").report_status(REPORT, "s3cret")
    assert "422" in str(exc.value)
    assert "bad sha" in str(exc.value)


def test_network_error_becomes_delivery_error(monkeypatch) -> None:
    def fake_urlopen(req):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(StatusDeliveryError):
        BitbucketStatusClient("acme/shop").report_status(REPORT, "s3cret")


def test_unknown_host() -> None:
    with pytest.raises(ConfigError) as exc:
        client_for_host("gitlab", "acme/shop")
    assert exc.value.kind == "UnknownRepositoryHost"
