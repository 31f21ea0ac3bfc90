"""Push payloads, the FCM gateway and token resolution."""

import json

import httpx
import pytest
from pydantic import SecretStr

from taskme.config import Settings
from taskme.exceptions import PushDeliveryError, PushTokenMissingError
from taskme.services.push import FCMPushGateway, PushMessage, PushNotifier, build_fcm_payload


def fcm_settings() -> Settings:
    return Settings(fcm_project_id="taskme-test", fcm_access_token=SecretStr("ya29.test"))


def gateway_with(handler) -> FCMPushGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FCMPushGateway(fcm_settings(), client=client)


class TestPayload:
    def test_high_priority_on_every_platform(self):
        payload = build_fcm_payload(
            PushMessage("tok", "Task reminder", "Call", {"task_id": "t1", "type": "task_reminder"})
        )["message"]

        assert payload["token"] == "tok"
        assert payload["notification"] == {"title": "Task reminder", "body": "Call"}
        assert payload["data"] == {"task_id": "t1", "type": "task_reminder"}
        assert payload["android"]["priority"] == "high"
        assert payload["android"]["notification"]["sound"] == "default"
        assert payload["apns"]["headers"]["apns-priority"] == "10"
        assert payload["apns"]["payload"]["aps"] == {"sound": "default", "badge": 1}
        assert payload["webpush"]["headers"]["Urgency"] == "high"
        assert payload["webpush"]["notification"]["requireInteraction"] is True


class TestFCMGateway:
    async def test_posts_to_project_endpoint(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"name": "projects/taskme-test/messages/1"})

        name = await gateway_with(handler).send(PushMessage("tok", "t", "b"))

        assert name == "projects/taskme-test/messages/1"
        request = seen[0]
        assert request.url.path == "/v1/projects/taskme-test/messages:send"
        assert request.headers["Authorization"] == "Bearer ya29.test"
        assert json.loads(request.content)["message"]["token"] == "tok"

    async def test_rejection_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": {"status": "NOT_FOUND"}})

        with pytest.raises(PushDeliveryError) as excinfo:
            await gateway_with(handler).send(PushMessage("stale", "t", "b"))
        assert excinfo.value.status == 404

    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PushDeliveryError):
            await gateway_with(handler).send(PushMessage("tok", "t", "b"))


class TestPushNotifier:
    async def test_uses_registered_token(self, db, push_gateway, make_user):
        user = await make_user(push_token="device-1")

        await PushNotifier(db, push_gateway).notify_user(user.id, "Hi", "There", {"k": "v"})

        assert push_gateway.sent == [PushMessage("device-1", "Hi", "There", {"k": "v"})]

    async def test_missing_token(self, db, push_gateway, make_user):
        user = await make_user()

        with pytest.raises(PushTokenMissingError):
            await PushNotifier(db, push_gateway).notify_user(user.id, "Hi", "There")
        assert push_gateway.sent == []
