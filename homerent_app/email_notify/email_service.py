import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import aiosmtplib

from core.breaker import CircuitBreaker, email_breaker
from core.settings import settings

logger = logging.getLogger(__name__)


def _wrap(title: str, name: str, body: str) -> str:
    return f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6;">
            <h2>{escape(title)}</h2>
            <p>Hello {escape(name or "there")},</p>
            {body}
            <p>Best regards,<br>The HomeRent Team</p>
        </body>
        </html>
        """


class EmailService:
    def __init__(self, breaker: CircuitBreaker = email_breaker):
        self.breaker = breaker

    def _build(self, to: str, subject: str, html_content: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = settings.EMAIL_USER or "no-reply@homerent.local"
        message["To"] = to
        message.attach(MIMEText(html_content, "html"))
        return message

    async def _send(self, message: MIMEMultipart):
        if not settings.EMAIL_SERVER:
            raise RuntimeError("EMAIL_SERVER is not configured")

        async def handler():
            await aiosmtplib.send(
                message,
                hostname=settings.EMAIL_SERVER,
                port=settings.EMAIL_PORT,
                username=settings.EMAIL_USER,
                password=settings.EMAIL_PASSWORD,
                start_tls=settings.EMAIL_USE_TLS,
            )
            logger.info(f"Email '{message['Subject']}' sent to {message['To']}")

        return await self.breaker.call(handler)

    async def send_payout_transferred(
        self, *, email: str, name: str, booking_id, amount: int, payout_txn_id: str
    ):
        body = f"""
            <p>The booking payout for booking <b>{escape(str(booking_id))}</b> has been
            transferred to your UPI account.</p>
            <p>Amount: <b>{settings.CURRENCY} {amount}</b><br>
            Transaction reference: <b>{escape(payout_txn_id)}</b></p>
        """
        message = self._build(
            email,
            "Booking payout transferred",
            _wrap("Payout transferred", name, body),
        )
        return await self._send(message)

    async def send_booking_approved(
        self, *, email: str, name: str, booking_id, house_title: str, amount: int
    ):
        body = f"""
            <p>Your booking payment of <b>{settings.CURRENCY} {amount}</b> for
            <b>{escape(house_title)}</b> has been verified and approved.</p>
            <p>Booking reference: {escape(str(booking_id))}</p>
        """
        message = self._build(
            email, "Your booking is approved", _wrap("Booking approved", name, body)
        )
        return await self._send(message)

    async def send_booking_rejected(
        self, *, email: str, name: str, booking_id, house_title: str, note: str = ""
    ):
        reason = f"<p>Reason: {escape(note)}</p>" if note else ""
        body = f"""
            <p>We could not verify your booking payment for
            <b>{escape(house_title)}</b>.</p>
            {reason}
            <p>Booking reference: {escape(str(booking_id))}</p>
        """
        message = self._build(
            email, "Your booking was not approved", _wrap("Booking rejected", name, body)
        )
        return await self._send(message)
