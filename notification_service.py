"""Notification dispatch for reminders.

The scheduler only talks to NotificationDispatcher.send(). Each channel is
handled by its own sender:

- email: SendGrid v3 mail API over httpx
- sms: Twilio messages API through the twilio SDK (async HTTP client)
- app_notification: in-app delivery is not wired to a push provider yet;
  the request is acknowledged and logged (fire-and-forget)

Senders report provider failures by returning False; they never raise for
them. The dispatcher lets unexpected exceptions through to the caller.
"""

import enum
from dataclasses import dataclass
from typing import Optional

import httpx
from twilio.base.exceptions import TwilioRestException
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client

from config import Settings, settings as default_settings
from logger_config import setup_logger

logger = setup_logger(__name__, 'notifications.log')

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"


class Channel(enum.Enum):
    """Notification channel; values match the reminder method names."""
    EMAIL = "email"
    SMS = "sms"
    APP = "app_notification"


@dataclass(frozen=True)
class ContactInfo:
    """How to reach the owner of an entity."""

    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "ContactInfo":
        return cls(
            user_id=user.id,
            name=user.name,
            email=user.email or None,
            phone_number=user.phone_number or None,
        )


class SendGridEmailSender:
    """Send HTML email through the SendGrid v3 API."""

    def __init__(
        self,
        api_key: Optional[str],
        sender_email: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._api_key = api_key
        self._sender_email = sender_email
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._sender_email)

    async def asend(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send one email.

        Args:
            to_email: Recipient address
            subject: Email subject
            html_content: HTML body

        Returns:
            bool: True if SendGrid accepted the message, False otherwise
        """
        if not self.configured:
            logger.warning(f"SendGrid API key or sender email not configured. Skipping email to {to_email}")
            return False

        payload = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": self._sender_email},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(SENDGRID_API_URL, json=payload, headers=headers)

            if response.status_code in (200, 202):
                logger.info(f"Email notification sent to {to_email}")
                return True

            logger.error(
                f"Failed to send email to {to_email}. "
                f"Status: {response.status_code}, Response: {response.text}"
            )
            return False

        except httpx.TimeoutException:
            logger.error(f"Timeout while sending email to {to_email}")
            return False
        except httpx.RequestError as e:
            logger.error(f"Network error while sending email to {to_email}: {str(e)}")
            return False


class TwilioSmsSender:
    """Send SMS through Twilio."""

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        client: Optional[Client] = None
    ):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._from_number)

    async def asend(self, to_number: str, body: str) -> bool:
        """Send one SMS.

        Returns:
            bool: True if Twilio accepted the message, False otherwise
        """
        if not self.configured:
            logger.warning(f"Twilio credentials not fully configured. Skipping SMS to {to_number}")
            return False

        client = self._use_client()
        try:
            res = await client.messages.create_async(
                body=body,
                from_=self._from_number,
                to=to_number,
            )
        except TwilioRestException as e:
            logger.error(f"Error sending SMS to {to_number}: {e}")
            return False

        if res.error_message:
            logger.warning(
                f"Failed SMS to {to_number}, status {res.error_code}, error {res.error_message}"
            )
            return False

        logger.info(f"SMS notification sent to {to_number}")
        return True

    def _use_client(self) -> Client:
        if not self._client:
            self._client = Client(
                username=self._account_sid,
                password=self._auth_token,
                http_client=AsyncTwilioHttpClient(),
            )
        return self._client


class AppNotificationSender:
    """In-app notifications: acknowledged and logged only."""

    async def asend(self, target: ContactInfo, body: str) -> bool:
        logger.info(f"[App Notification] for user {target.name or target.user_id}: {body}")
        return True


class NotificationDispatcher:
    """Route a notification to the sender of its channel."""

    def __init__(
        self,
        email_sender: SendGridEmailSender,
        sms_sender: TwilioSmsSender,
        app_sender: Optional[AppNotificationSender] = None
    ):
        self._email = email_sender
        self._sms = sms_sender
        self._app = app_sender or AppNotificationSender()

    async def send(
        self,
        channel: Channel,
        target: ContactInfo,
        body: str,
        subject: Optional[str] = None
    ) -> bool:
        """Send body to target over channel.

        Returns:
            bool: True on success, False if the provider did not accept it

        Raises:
            ValueError: If channel is not supported or target lacks the
                contact detail the channel needs
        """
        if channel is Channel.EMAIL:
            if not target.email:
                raise ValueError(f"User {target.user_id} has no email address")
            return await self._email.asend(target.email, subject or "", body)
        if channel is Channel.SMS:
            if not target.phone_number:
                raise ValueError(f"User {target.user_id} has no phone number")
            return await self._sms.asend(target.phone_number, body)
        if channel is Channel.APP:
            return await self._app.asend(target, body)
        raise ValueError(f"Unsupported notification channel: {channel}")


def build_dispatcher(config: Optional[Settings] = None) -> NotificationDispatcher:
    """Create a dispatcher wired to the configured providers."""
    config = config or default_settings
    return NotificationDispatcher(
        email_sender=SendGridEmailSender(
            api_key=config.SENDGRID_API_KEY,
            sender_email=config.SENDER_EMAIL,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        ),
        sms_sender=TwilioSmsSender(
            account_sid=config.TWILIO_ACCOUNT_SID,
            auth_token=config.TWILIO_AUTH_TOKEN,
            from_number=config.TWILIO_PHONE_NUMBER,
        ),
    )
