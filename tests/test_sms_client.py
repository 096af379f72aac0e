import base64
import hashlib
import hmac
from types import SimpleNamespace

import pytest
import requests

from app.core.exceptions import UpstreamError
from app.modules.auth import sms_client
from app.modules.auth.sms_client import SENS_BASE_URL, SensSmsClient, make_signature


@pytest.fixture
def client():
    return SensSmsClient(
        access_key="access",
        secret_key="secret",
        service_id="ncp:sms:kr:357155432756:otgit",
        from_number="010-0000-1111",
        timeout=3,
    )


def test_signature_matches_hmac_sha256():
    expected = base64.b64encode(
        hmac.new(b"secret", b"POST /sms/v2/services/otgit/messages\n1700000000000\naccess", hashlib.sha256).digest()
    ).decode()
    assert make_signature("POST", "/sms/v2/services/otgit/messages", "1700000000000", "access", "secret") == expected


def test_uri_uses_service_name(client):
    assert client.uri == "/sms/v2/services/otgit/messages"


def test_configuration_check(client):
    assert client.is_configured()
    assert not SensSmsClient(access_key="a", secret_key="s", from_number="1").is_configured()


def test_unconfigured_client_refuses_to_send(monkeypatch):
    monkeypatch.setattr(sms_client.requests, "post", lambda *args, **kwargs: pytest.fail("no request expected"))
    with pytest.raises(UpstreamError):
        SensSmsClient(access_key="a", secret_key="s", from_number="1").send("010-1234-5678", "hi")


def test_send_posts_signed_request(client, monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append(SimpleNamespace(url=url, json=json, headers=headers, timeout=timeout))
        return SimpleNamespace(status_code=202, text="", json=lambda: {"statusName": "success"})

    monkeypatch.setattr(sms_client.requests, "post", fake_post)

    result = client.send_verification_code("010-1234-5678", "123456")

    assert result == {"statusName": "success"}
    call = calls[0]
    assert call.url == f"{SENS_BASE_URL}/sms/v2/services/otgit/messages"
    assert call.timeout == 3
    assert call.json["from"] == "01000001111"
    assert call.json["messages"] == [{"to": "01012345678"}]
    assert "123456" in call.json["content"]
    timestamp = call.headers["x-ncp-apigw-timestamp"]
    assert call.headers["x-ncp-iam-access-key"] == "access"
    assert call.headers["x-ncp-apigw-signature-v2"] == make_signature(
        "POST", client.uri, timestamp, "access", "secret"
    )


def test_gateway_error_status(client, monkeypatch):
    monkeypatch.setattr(
        sms_client.requests, "post",
        lambda *args, **kwargs: SimpleNamespace(status_code=401, text="unauthorized", json=lambda: {}),
    )
    with pytest.raises(UpstreamError):
        client.send("010-1234-5678", "hi")


def test_gateway_unreachable(client, monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(sms_client.requests, "post", refuse)
    with pytest.raises(UpstreamError):
        client.send("010-1234-5678", "hi")
