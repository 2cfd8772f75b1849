# src/spotnere/infrastructure/push/expo_push.py

from dataclasses import dataclass
import logging
from typing import Any, Mapping, Optional

import requests

from spotnere.infrastructure.config import EXPO_PUSH_URL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushResult:
    success: bool
    error: Optional[str] = None


class ExpoPushClient:
    """
    Best-effort delivery through Expo's push API. Failures are reported in
    the returned PushResult and logged, never raised.
    """

    def __init__(
        self,
        push_url: str = EXPO_PUSH_URL,
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.push_url = push_url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def send(
        self,
        push_token: str | None,
        title: str,
        body: str,
        data: Mapping[str, Any] | None = None,
    ) -> PushResult:
        if not push_token or not isinstance(push_token, str) or not push_token.strip():
            return PushResult(success=False, error="Invalid push token")

        message = {
            "to": push_token.strip(),
            "title": title,
            "body": body,
            "data": dict(data or {}),
        }

        try:
            response = self.session.post(
                self.push_url,
                json=message,
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
            result = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Expo push request failed: %s", exc)
            return PushResult(success=False, error=str(exc) or "Push request failed")

        if not response.ok:
            logger.error("Expo push error: %s", result)
            errors = result.get("errors") if isinstance(result, dict) else None
            message_text = None
            if errors:
                message_text = errors[0].get("message")
            if not message_text and isinstance(result, dict):
                message_text = result.get("message")
            return PushResult(success=False, error=message_text or "Push failed")

        ticket = result.get("data") if isinstance(result, dict) else None
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            error = ticket.get("message") or "Push delivery failed"
            logger.warning("Expo push delivery error: %s", error)
            return PushResult(success=False, error=error)

        return PushResult(success=True)
