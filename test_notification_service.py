import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest
from twilio.base.exceptions import TwilioRestException
from twilio.http.async_http_client import AsyncTwilioHttpClient

from notification_service import (
    SENDGRID_API_URL,
    AppNotificationSender,
    Channel,
    ContactInfo,
    NotificationDispatcher,
    SendGridEmailSender,
    TwilioSmsSender,
)

ADA = ContactInfo(user_id="u1", name="Ada", email="ada@example.com", phone_number="+15551234567")


def test_sendgrid_posts_mail_payload():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(202)

    sender = SendGridEmailSender("SG.key", "noreply@example.com", transport=httpx.MockTransport(handler))

    assert asyncio.run(sender.asend("ada@example.com", "Reminder", "<p>hi</p>")) is True
    request = requests[0]
    assert str(request.url) == SENDGRID_API_URL
    assert request.headers["Authorization"] == "Bearer SG.key"
    payload = json.loads(request.content)
    assert payload["personalizations"] == [{"to": [{"email": "ada@example.com"}]}]
    assert payload["from"] == {"email": "noreply@example.com"}
    assert payload["subject"] == "Reminder"
    assert payload["content"] == [{"type": "text/html", "value": "<p>hi</p>"}]


def test_sendgrid_error_status_is_not_success():
    sender = SendGridEmailSender(
        "SG.key", "noreply@example.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(429, text="slow down")),
    )

    assert asyncio.run(sender.asend("ada@example.com", "Reminder", "<p>hi</p>")) is False


def test_sendgrid_network_error_is_not_success():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    sender = SendGridEmailSender("SG.key", "noreply@example.com", transport=httpx.MockTransport(handler))

    assert asyncio.run(sender.asend("ada@example.com", "Reminder", "<p>hi</p>")) is False


def test_sendgrid_unconfigured_sends_nothing():
    def handler(request):
        raise AssertionError("no request expected")

    sender = SendGridEmailSender(None, None, transport=httpx.MockTransport(handler))

    assert sender.configured is False
    assert asyncio.run(sender.asend("ada@example.com", "Reminder", "<p>hi</p>")) is False


class FakeTwilioMessages:
    def __init__(self, result=None, error=None):
        self.created = []
        self.result = result or SimpleNamespace(error_message=None, error_code=None)
        self.error = error

    async def create_async(self, **kwargs):
        self.created.append(kwargs)
        if self.error:
            raise self.error
        return self.result


def twilio_sender(messages):
    return TwilioSmsSender("AC123", "token", "+15550000000", client=SimpleNamespace(messages=messages))


def test_twilio_sends_sms():
    messages = FakeTwilioMessages()

    assert asyncio.run(twilio_sender(messages).asend("+15551234567", "Reminder text")) is True
    assert messages.created == [{"body": "Reminder text", "from_": "+15550000000", "to": "+15551234567"}]


def test_twilio_error_message_is_not_success():
    messages = FakeTwilioMessages(result=SimpleNamespace(error_message="Unreachable", error_code=30003))

    assert asyncio.run(twilio_sender(messages).asend("+15551234567", "Reminder text")) is False


def test_twilio_rest_exception_is_not_success():
    messages = FakeTwilioMessages(error=TwilioRestException(400, "/Messages", msg="Invalid 'To' number"))

    assert asyncio.run(twilio_sender(messages).asend("+15551234567", "Reminder text")) is False


def test_twilio_default_client_uses_async_transport():
    sender = TwilioSmsSender("AC123", "token", "+15550000000")

    async def build_client():
        return sender._use_client()

    client = asyncio.run(build_client())

    assert isinstance(client.http_client, AsyncTwilioHttpClient)
    assert client.username == "AC123"
    assert sender._use_client() is client


def test_twilio_unconfigured_sends_nothing():
    sender = TwilioSmsSender(None, None, None)

    assert asyncio.run(sender.asend("+15551234567", "Reminder text")) is False


class RecordingSender:
    def __init__(self):
        self.calls = []

    async def asend(self, *args):
        self.calls.append(args)
        return True


def test_dispatcher_routes_by_channel():
    email, sms, app = RecordingSender(), RecordingSender(), RecordingSender()
    dispatcher = NotificationDispatcher(email, sms, app)

    async def scenario():
        await dispatcher.send(Channel.EMAIL, ADA, "<p>body</p>", subject="Subject")
        await dispatcher.send(Channel.SMS, ADA, "sms body")
        await dispatcher.send(Channel.APP, ADA, "app body")

    asyncio.run(scenario())

    assert email.calls == [("ada@example.com", "Subject", "<p>body</p>")]
    assert sms.calls == [("+15551234567", "sms body")]
    assert app.calls == [(ADA, "app body")]


def test_dispatcher_rejects_missing_contact_and_unknown_channel():
    dispatcher = NotificationDispatcher(RecordingSender(), RecordingSender())
    nobody = ContactInfo(user_id="u2")

    with pytest.raises(ValueError):
        asyncio.run(dispatcher.send(Channel.EMAIL, nobody, "body"))
    with pytest.raises(ValueError):
        asyncio.run(dispatcher.send(Channel.SMS, nobody, "body"))
    with pytest.raises(ValueError):
        asyncio.run(dispatcher.send("fax", ADA, "body"))


def test_app_notification_is_acknowledged():
    assert asyncio.run(AppNotificationSender().asend(ADA, "body")) is True


def test_contact_info_from_user():
    user = SimpleNamespace(id="u3", name="Grace", email="", phone_number="+15557654321")

    contact = ContactInfo.from_user(user)
    assert contact.email is None
    assert contact.phone_number == "+15557654321"
