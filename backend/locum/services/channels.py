"""External message channels (email, WhatsApp) used for notification nudges.

Channels are best-effort: they raise ExternalChannelFailure and the
notification dispatcher decides what to do with it.
"""
import asyncio
import html
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from locum.config import settings
from locum.services.errors import ExternalChannelFailure

logger = logging.getLogger(__name__)


@dataclass
class OutboundMessage:
    """One nudge for one recipient."""
    subject: str
    body: str
    to_email: Optional[str] = None
    to_phone: Optional[str] = None
    action_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class MessageChannel:
    """Send capability injected into the notification dispatcher."""
    name = "base"

    async def send(self, message: OutboundMessage) -> None:
        raise NotImplementedError


class LogChannel(MessageChannel):
    """Dev mode: print messages instead of sending them."""
    name = "log"

    async def send(self, message: OutboundMessage) -> None:
        logger.info(f"[DEV MODE] Message to {message.to_email or message.to_phone}: {message.subject}")
        logger.info(f"[DEV MODE] Content:\n{message.body}")


class EmailChannel(MessageChannel):
    """Sends notification emails through SendGrid."""
    name = "email"
    
    def __init__(self, api_key: str, from_email: str):
        from sendgrid import SendGridAPIClient
        self.client = SendGridAPIClient(api_key)
        self.from_email = from_email
    
    def _render_html(self, message: OutboundMessage) -> str:
        subject = html.escape(message.subject)
        body = html.escape(message.body)
        link = ""
        if message.action_url:
            action_url = html.escape(message.action_url, quote=True)
            link = f"""
                    <p style="margin: 30px 0;">
                        <a href="{action_url}" style="background-color: #0f766e; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px; display: inline-block; font-weight: bold;">
                            Open in Locum
                        </a>
                    </p>"""
        return f"""
        <html>
            <body style="font-family: Arial, sans-serif; background-color: #f4f4f4; padding: 20px;">
                <div style="max-width: 600px; margin: 0 auto; background-color: white; padding: 40px; border-radius: 8px;">
                    <h2 style="color: #333; margin-bottom: 20px;">{subject}</h2>
                    <p style="color: #666; font-size: 16px; line-height: 1.6;">{body}</p>{link}
                </div>
            </body>
        </html>
        """
    
    async def send(self, message: OutboundMessage) -> None:
        if not message.to_email:
            return
        
        from sendgrid.helpers.mail import Mail, Email, To, Content
        
        mail = Mail(
            from_email=Email(self.from_email, "Locum"),
            to_emails=To(message.to_email),
            subject=message.subject,
            plain_text_content=Content("text/plain", message.body),
            html_content=Content("text/html", self._render_html(message))
        )
        
        try:
            response = self.client.send(mail)
        except Exception as e:
            raise ExternalChannelFailure(f"SendGrid error for {message.to_email}: {e}") from e
        
        if not 200 <= response.status_code < 300:
            raise ExternalChannelFailure(
                f"SendGrid returned {response.status_code} for {message.to_email}"
            )
        logger.info(f"Email sent to {message.to_email}: {message.subject}")


class WhatsAppChannel(MessageChannel):
    """Posts job notifications to the WhatsApp notifications gateway."""
    name = "whatsapp"
    
    def __init__(self, base_url: str, api_key: str, timeout_s: int = 10):
        self.url = f"{base_url.rstrip('/')}/api/whatsapp/job"
        self.api_key = api_key
        self.timeout_s = timeout_s
    
    async def send(self, message: OutboundMessage) -> None:
        if not message.to_phone:
            return
        
        payload = {
            "phoneNumber": message.to_phone,
            "message": f"{message.subject}\n\n{message.body}",
            "metadata": {**message.metadata, "actionUrl": message.action_url},
        }
        headers = {"Content-Type": "application/json", "x-api-key": self.api_key}
        
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_s)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=payload, headers=headers) as resp:
                    if resp.status >= 400:
                        body = await resp.text(errors="ignore")
                        raise ExternalChannelFailure(
                            f"WhatsApp gateway returned {resp.status}: {body[:200]}"
                        )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalChannelFailure(f"WhatsApp gateway unreachable: {e}") from e


class FanOutChannel(MessageChannel):
    """Tries every channel; reports failure if any of them failed."""
    name = "fanout"
    
    def __init__(self, channels: List[MessageChannel]):
        self.channels = channels
    
    async def send(self, message: OutboundMessage) -> None:
        failures = []
        for channel in self.channels:
            try:
                await channel.send(message)
            except ExternalChannelFailure as e:
                failures.append(f"{channel.name}: {e}")
        if failures:
            raise ExternalChannelFailure("; ".join(failures))


def build_default_channel() -> MessageChannel:
    """Channel stack for the configured email mode."""
    if settings.email_mode != "prod":
        return LogChannel()
    
    channels: List[MessageChannel] = []
    if settings.sendgrid_api_key:
        channels.append(EmailChannel(settings.sendgrid_api_key, settings.email_from))
    else:
        logger.error("email_mode is 'prod' but SENDGRID_API_KEY is not set; email nudges disabled")
    if settings.whatsapp_api_url and settings.whatsapp_api_key:
        channels.append(WhatsAppChannel(settings.whatsapp_api_url, settings.whatsapp_api_key))
    return FanOutChannel(channels)
