from __future__ import annotations

import json

from httpx import MockTransport, Response

from slotkeeper.integrations.expo_push_client import ExpoPushClient, ExpoPushMessage, is_expo_push_token


def message(token: str) -> ExpoPushMessage:
    return ExpoPushMessage(to=token, title="New booking", body="Jamie - Haircut", data={"type": "new_booking"})


def test_token_format():
    assert is_expo_push_token("ExponentPushToken[abc123]")
    assert is_expo_push_token("ExpoPushToken[abc123]")
    assert not is_expo_push_token("not-a-token")
    assert not is_expo_push_token(None)


def test_send_posts_payload_with_bearer_token():
    captured: dict[str, object] = {}

    def handler(request):
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = json.loads(request.content)
        return Response(200, json={"data": [{"status": "ok", "id": "t1"}]})

    client = ExpoPushClient(
        url="https://expo.test/push", access_token="expo-secret", transport=MockTransport(handler)
    )
    result = client.send([message("ExponentPushToken[a]")])

    assert result.sent == 1
    assert result.failed == 0
    assert captured["auth"] == "Bearer expo-secret"
    assert captured["body"] == [
        {
            "to": "ExponentPushToken[a]",
            "title": "New booking",
            "body": "Jamie - Haircut",
            "data": {"type": "new_booking"},
            "sound": "default",
            "priority": "high",
        }
    ]


def test_malformed_tokens_are_never_sent():
    calls = []

    def handler(request):
        calls.append(request)
        return Response(200, json={"data": []})

    client = ExpoPushClient(url="https://expo.test/push", transport=MockTransport(handler))
    result = client.send([message("garbage")])

    assert calls == []
    assert result.invalid_tokens == ["garbage"]
    assert result.sent == 0


def test_unregistered_devices_are_reported_invalid_not_failed():
    def handler(request):
        return Response(
            200,
            json={
                "data": [
                    {"status": "ok"},
                    {"status": "error", "details": {"error": "DeviceNotRegistered"}},
                    {"status": "error", "message": "MessageRateExceeded"},
                ]
            },
        )

    client = ExpoPushClient(url="https://expo.test/push", transport=MockTransport(handler))
    result = client.send(
        [message("ExponentPushToken[a]"), message("ExponentPushToken[b]"), message("ExponentPushToken[c]")]
    )

    assert result.sent == 1
    assert result.failed == 1
    assert result.invalid_tokens == ["ExponentPushToken[b]"]


def test_failed_chunk_does_not_stop_later_chunks():
    requests = []

    def handler(request):
        requests.append(request)
        if len(requests) == 1:
            return Response(500, text="upstream error")
        return Response(200, json={"data": [{"status": "ok"} for _ in json.loads(request.content)]})

    client = ExpoPushClient(url="https://expo.test/push", chunk_size=2, transport=MockTransport(handler))
    result = client.send([message(f"ExponentPushToken[{index}]") for index in range(3)])

    assert len(requests) == 2
    assert result.failed == 2
    assert result.sent == 1


def test_short_ticket_list_counts_missing_as_failed():
    def handler(request):
        return Response(200, json={"data": [{"status": "ok"}]})

    client = ExpoPushClient(url="https://expo.test/push", transport=MockTransport(handler))
    result = client.send([message("ExponentPushToken[a]"), message("ExponentPushToken[b]")])

    assert result.sent == 1
    assert result.failed == 1
