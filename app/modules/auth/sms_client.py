"""
Naver Cloud Platform SENS (v2) SMS client.

Requests are signed with HMAC-SHA256 over "POST {uri}\\n{timestamp}\\n{access key}"
using the secret key, base64 encoded, and sent in the x-ncp-apigw-signature-v2 header.
"""

import base64
import hashlib
import hmac
import time
import requests
from app.config import settings
from app.core.exceptions import UpstreamError
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

SENS_BASE_URL = "https://sens.apigw.ntruss.com"


def make_signature(method: str, uri: str, timestamp: str, access_key: str, secret_key: str) -> str:
    message = f"{method} {uri}\n{timestamp}\n{access_key}"
    digest = hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


class SensSmsClient:
    def __init__(
        self,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        service_id: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.access_key = access_key or settings.ncp_access_key
        self.secret_key = secret_key or settings.ncp_secret_key
        self.service_id = service_id or settings.ncp_sms_service_id
        self.from_number = from_number or settings.ncp_sms_from_number
        self.timeout = timeout or settings.sms_timeout_seconds

    def is_configured(self) -> bool:
        return all([self.access_key, self.secret_key, self.service_id, self.from_number])

    @property
    def uri(self) -> str:
        # "ncp:sms:kr:<project>:<service>" -> "<service>"
        service_name = self.service_id.split(":")[-1]
        return f"/sms/v2/services/{service_name}/messages"

    def send(self, phone: str, content: str) -> Dict[str, Any]:
        """Send a single SMS. Raises UpstreamError when the gateway refuses or is unreachable."""
        if not self.is_configured():
            raise UpstreamError("SMS gateway is not configured")

        timestamp = str(int(time.time() * 1000))
        headers = {
            "Content-Type": "application/json; charset=utf-8",
            "x-ncp-apigw-timestamp": timestamp,
            "x-ncp-iam-access-key": self.access_key,
            "x-ncp-apigw-signature-v2": make_signature("POST", self.uri, timestamp, self.access_key, self.secret_key),
        }
        body = {
            "type": "SMS",
            "contentType": "COMM",
            "countryCode": "82",
            "from": self.from_number.replace("-", ""),
            "content": content,
            "messages": [{"to": phone.replace("-", "")}],
        }
        try:
            response = requests.post(f"{SENS_BASE_URL}{self.uri}", json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"SMS gateway unreachable: {str(e)}")
            raise UpstreamError(f"Failed to send SMS: {str(e)}")

        if response.status_code >= 400:
            logger.error(f"SMS gateway returned {response.status_code}: {response.text}")
            raise UpstreamError(f"SMS gateway error ({response.status_code})")
        return response.json()

    def send_verification_code(self, phone: str, code: str) -> Dict[str, Any]:
        return self.send(phone, f"[OTGIT] Your verification code is {code}. It expires in {settings.verification_code_ttl_minutes} minutes.")


def get_sms_client() -> SensSmsClient:
    return SensSmsClient()
