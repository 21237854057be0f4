"""SMS notifications via Twilio.

Sending is skipped (and reported as not sent) when no Twilio credentials
are configured, which is the normal state in development.  Delivery
problems are logged and returned as ``False``; they never fail the
request that triggered them.
"""

import asyncio
import logging

from twilio.base.exceptions import TwilioException

logger = logging.getLogger(__name__)


class SmsNotifier:
    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = None

    @property
    def enabled(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _send(self, phone: str, message: str) -> None:
        if self._client is None:
            from twilio.rest import Client
            self._client = Client(self.account_sid, self.auth_token)
        self._client.messages.create(body=message, from_=self.from_number, to=phone)

    async def send_sms(self, phone: str, message: str) -> bool:
        if not phone:
            logger.info("No phone number, SMS not sent")
            return False
        if not self.enabled:
            logger.info("SMS disabled (no Twilio credentials), not sending to %s", phone)
            return False

        try:
            # The Twilio client is blocking
            await asyncio.to_thread(self._send, phone, message)
        except (TwilioException, OSError) as e:
            logger.warning("Failed to send SMS to %s: %s", phone, e)
            return False

        logger.info("SMS sent to %s", phone)
        return True
