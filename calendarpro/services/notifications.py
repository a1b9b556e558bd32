"""Invitation emails sent over SMTP.

Delivery is fire-and-forget: failures are logged and never affect the
invitation that triggered them.
"""

import html
import logging
import smtplib
import ssl
from datetime import datetime
from email.message import EmailMessage
from email.utils import parseaddr
from urllib.parse import urlencode

from calendarpro.core import config

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


def _escape(value: str) -> str:
    return html.escape(str(value), quote=True)


def build_join_link(token: str) -> str:
    return f"{config.FRONTEND_URL.rstrip('/')}/join?{urlencode({'token': token})}"


def build_invitation_message(
    to_address: str,
    token: str,
    organization_name: str | None,
    inviter_name: str | None,
) -> EmailMessage:
    link = build_join_link(token)
    organization = organization_name or 'our organization'
    inviter = inviter_name or 'Someone'

    message = EmailMessage()
    message['From'] = config.EMAIL_FROM_ADDRESS
    message['To'] = to_address
    message['Subject'] = f"You're invited to join {organization} on Calendar Pro"
    message.set_content(
        f"Hi there!\n\n"
        f"{inviter} has invited you to join {organization} on Calendar Pro.\n\n"
        f"Click here to accept: {link}\n\n"
        f"This invitation will expire in {config.INVITATION_EXPIRY_DAYS} days.\n\n"
        f"Best regards,\nThe Calendar Pro Team\n"
    )
    # Names are user supplied; only the HTML part needs escaping.
    message.add_alternative(
        f"<p>Hi there!</p>"
        f"<p><strong>{_escape(inviter)}</strong> has invited you to join "
        f"<strong>{_escape(organization)}</strong> on Calendar Pro.</p>"
        f'<p><a href="{_escape(link)}">Accept Invitation</a></p>'
        f"<p><em>This invitation will expire in {config.INVITATION_EXPIRY_DAYS} days.</em></p>",
        subtype='html',
    )
    return message


def build_reminder_message(
    to_address: str,
    token: str,
    organization_name: str | None,
    inviter_name: str | None,
    expires_at: datetime,
) -> EmailMessage:
    link = build_join_link(token)
    organization = organization_name or 'the team'
    inviter = inviter_name or 'someone'
    expires_on = expires_at.date().isoformat()

    message = EmailMessage()
    message['From'] = config.EMAIL_FROM_ADDRESS
    message['To'] = to_address
    message['Subject'] = f"Reminder: Join {organization} on Calendar Pro"
    message.set_content(
        f"Hi there!\n\n"
        f"You still have a pending invitation to join {organization} on Calendar Pro.\n\n"
        f"This is a friendly reminder that {inviter} invited you to join their team.\n\n"
        f"Click here to accept: {link}\n\n"
        f"This invitation expires on {expires_on}.\n"
    )
    message.add_alternative(
        f"<p>Hi there!</p>"
        f"<p><strong>Reminder:</strong> You still have a pending invitation to join "
        f"<strong>{_escape(organization)}</strong> on Calendar Pro.</p>"
        f"<p>This is a friendly reminder that <strong>{_escape(inviter)}</strong> invited you to join their team.</p>"
        f'<p><a href="{_escape(link)}">Accept Invitation</a></p>'
        f"<p><em>This invitation expires on {expires_on}.</em></p>",
        subtype='html',
    )
    return message


def deliver(message: EmailMessage) -> bool:
    if not config.SMTP_HOST:
        logger.info('SMTP not configured; skipping email to %s (%s)', message['To'], message['Subject'])
        return False

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as server:
            if config.SMTP_USE_TLS:
                server.starttls(context=ssl.create_default_context())
            if config.SMTP_USERNAME:
                server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
            server.send_message(message, from_addr=parseaddr(config.EMAIL_FROM_ADDRESS)[1])
    except (smtplib.SMTPException, OSError):
        logger.exception('Failed to send email to %s', message['To'])
        return False

    logger.info('Sent email to %s', message['To'])
    return True


def send_invitation_email(to_address: str, token: str, organization_name: str | None, inviter_name: str | None) -> bool:
    return deliver(build_invitation_message(to_address, token, organization_name, inviter_name))


def send_invitation_reminder(
    to_address: str,
    token: str,
    organization_name: str | None,
    inviter_name: str | None,
    expires_at: datetime,
) -> bool:
    return deliver(build_reminder_message(to_address, token, organization_name, inviter_name, expires_at))
