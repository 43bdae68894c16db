"""Minimal Expo push API client."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from pydantic import SecretStr

from ..core.config import settings
from ..core.constants import EXPO_MAX_MESSAGES_PER_REQUEST

logger = logging.getLogger(__name__)

_EXPO_TOKEN_RE = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[.+\]$")
_LEGACY_TOKEN_RE = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.I)

DEVICE_NOT_REGISTERED = "DeviceNotRegistered"


class ExpoPushError(RuntimeError):
    """Raised when the Expo push API responds with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_expo_push_token(token: Any) -> bool:
    return isinstance(token, str) and bool(
        _EXPO_TOKEN_RE.match(token) or _LEGACY_TOKEN_RE.match(token)
    )


@dataclass(frozen=True)
class ExpoPushMessage:
    to: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    sound: Optional[str] = "default"
    priority: str = "high"
    channel_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "sound": self.sound,
            "priority": self.priority,
            "channelId": self.channel_id,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass
class ExpoSendResult:
    sent: int = 0
    failed: int = 0
    invalid_tokens: List[str] = field(default_factory=list)

    def merge(self, other: "ExpoSendResult") -> None:
        self.sent += other.sent
        self.failed += other.failed
        self.invalid_tokens.extend(other.invalid_tokens)


def _chunks(messages: Sequence[ExpoPushMessage], size: int) -> Iterable[Sequence[ExpoPushMessage]]:
    for index in range(0, len(messages), size):
        yield messages[index : index + size]


class ExpoPushClient:
    """Thin client for the Expo push send endpoint."""

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        access_token: str | SecretStr | None = None,
        timeout: Optional[float] = None,
        chunk_size: int = EXPO_MAX_MESSAGES_PER_REQUEST,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        token = access_token if access_token is not None else settings.expo_access_token
        self._access_token = token.get_secret_value() if isinstance(token, SecretStr) else token
        self._url = url or settings.expo_push_url
        self._timeout = timeout or settings.expo_timeout_seconds
        self._chunk_size = chunk_size
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    def send_chunk(self, messages: Sequence[ExpoPushMessage]) -> List[Dict[str, Any]]:
        """POST one chunk and return its tickets, in message order."""
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.post(
                    self._url,
                    json=[message.to_payload() for message in messages],
                    headers=self._headers(),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise ExpoPushError(
                    f"Expo push request failed: {exc.response.text}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.HTTPError as exc:
                raise ExpoPushError(f"Expo push request error: {exc}") from exc

        body = response.json()
        tickets = body.get("data") if isinstance(body, dict) else None
        if not isinstance(tickets, list):
            raise ExpoPushError("Unexpected Expo push response shape", response.status_code)
        return tickets

    def send(self, messages: Sequence[ExpoPushMessage]) -> ExpoSendResult:
        """
        Send messages in chunks.

        Malformed tokens are never sent and are reported as invalid, as are
        tokens whose ticket says the device is no longer registered. A failed
        chunk counts all its messages as failed without affecting later chunks.
        """
        result = ExpoSendResult()
        valid: List[ExpoPushMessage] = []
        for message in messages:
            if is_expo_push_token(message.to):
                valid.append(message)
            else:
                logger.warning(f"Skipping malformed push token {message.to!r}")
                result.invalid_tokens.append(message.to)

        for chunk in _chunks(valid, self._chunk_size):
            try:
                tickets = self.send_chunk(chunk)
            except ExpoPushError as exc:
                logger.error(f"Expo push chunk of {len(chunk)} failed: {exc}")
                result.failed += len(chunk)
                continue
            result.merge(self._read_tickets(chunk, tickets))
        return result

    @staticmethod
    def _read_tickets(
        chunk: Sequence[ExpoPushMessage], tickets: List[Dict[str, Any]]
    ) -> ExpoSendResult:
        result = ExpoSendResult()
        for message, ticket in zip(chunk, tickets):
            if ticket.get("status") == "ok":
                result.sent += 1
                continue
            details = ticket.get("details") or {}
            if details.get("error") == DEVICE_NOT_REGISTERED:
                result.invalid_tokens.append(message.to)
            else:
                result.failed += 1
                logger.warning(f"Expo push ticket error for {message.to}: {ticket.get('message')}")
        # Tickets missing from a short response count as failures.
        result.failed += max(0, len(chunk) - len(tickets))
        return result
