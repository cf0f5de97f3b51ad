import logging
from typing import Optional

from twilio.rest import Client

from app.core.config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER

logger = logging.getLogger(__name__)


class TwilioClient:
    """Outbound SMS for attendee confirmations and cancellations."""

    def __init__(
        self,
        account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        phone_number: Optional[str] = TWILIO_PHONE_NUMBER,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.phone_number = phone_number
        self._client = None

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    @property
    def client(self) -> Client:
        # Built on first use; twilio refuses to construct without credentials
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send_sms(self, to: str, message: str, from_: Optional[str] = None):
        """Send an SMS, returning the Twilio message resource"""
        from_number = from_ or self.phone_number
        if not from_number:
            raise ValueError("Missing Twilio from number for SMS.")
        sent = self.client.messages.create(to=to, from_=from_number, body=message)
        logger.debug(f"Twilio message {sent.sid} queued for {to}")
        return sent


# Initialize the client
twilio_client = TwilioClient()
