# Overview: Outbound email through SendGrid's HTTP API, or the app log in development.

from __future__ import annotations

from html import escape

import httpx
from flask import current_app

EXTENSION_KEY = "efectivio.email"

SENDGRID_URL = "https://api.sendgrid.com"


class EmailSender:
    name = "base"

    def send(self, *, to: str, subject: str, html: str, text: str | None = None) -> None:
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    """Used when SENDGRID_API_KEY is unset; messages only reach the log."""
    name = "log"

    def __init__(self):
        self.sent: list[dict] = []

    def send(self, *, to, subject, html, text=None):
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        current_app.logger.info("Email (not sent, no provider configured) to=%s subject=%s", to, subject)


class SendGridEmailSender(EmailSender):
    name = "sendgrid"

    def __init__(self, *, api_key: str, from_address: str, timeout: float = 10.0,
                 transport: httpx.BaseTransport | None = None):
        self.from_address = from_address
        self.client = httpx.Client(
            base_url=SENDGRID_URL,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def send(self, *, to, subject, html, text=None):
        content = []
        if text:
            content.append({"type": "text/plain", "value": text})
        content.append({"type": "text/html", "value": html})
        resp = self.client.post(
            "/v3/mail/send",
            json={
                "personalizations": [{"to": [{"email": to}]}],
                "from": {"email": self.from_address},
                "subject": subject,
                "content": content,
            },
        )
        resp.raise_for_status()


def build_email_sender(config) -> EmailSender:
    api_key = config.get("SENDGRID_API_KEY")
    if not api_key:
        return LoggingEmailSender()
    return SendGridEmailSender(
        api_key=api_key,
        from_address=config.get("EMAIL_FROM") or "noreply@efectivio.com",
        timeout=config.get("OUTBOUND_TIMEOUT_SECONDS", 10.0),
    )


def init_email(app) -> None:
    app.extensions[EXTENSION_KEY] = build_email_sender(app.config)


def get_email_sender() -> EmailSender:
    return current_app.extensions[EXTENSION_KEY]


def send_email(*, to: str, subject: str, html: str, text: str | None = None) -> bool:
    """
    Send one message. Returns False on any provider failure; never raises.
    """
    try:
        get_email_sender().send(to=to, subject=subject, html=html, text=text)
        return True
    except httpx.HTTPError as exc:
        current_app.logger.error("Failed to send email to %s: %s", to, exc)
        return False


def send_portal_invitation(*, email: str, client_name: str, token: str) -> bool:
    link = f"{current_app.config.get('APP_URL', '').rstrip('/')}/portal/register?token={token}"
    days = current_app.config.get("INVITATION_TTL_DAYS", 7)
    subject = "Invitación al portal de clientes de Efectivio"
    html = (
        f"<p>Hola,</p>"
        f"<p>Has sido invitado a acceder al portal de clientes de <strong>{escape(client_name)}</strong>.</p>"
        f"<p><a href=\"{escape(link)}\">Crear mi cuenta</a></p>"
        f"<p>Esta invitación expira en {days} días.</p>"
    )
    text = f"Has sido invitado al portal de clientes de {client_name}. Crea tu cuenta: {link} (expira en {days} días)"
    return send_email(to=email, subject=subject, html=html, text=text)


def send_appointment_reminder(*, email: str, client_name: str, title: str, start_time: str,
                              location: str | None = None) -> bool:
    subject = f"Recordatorio de cita: {title}"
    where = f"<p>Lugar: {escape(location)}</p>" if location else ""
    html = (
        f"<p>Hola {escape(client_name)},</p>"
        f"<p>Le recordamos su cita <strong>{escape(title)}</strong> el {escape(start_time)}.</p>"
        f"{where}"
    )
    text = f"Recordatorio: {title} el {start_time}" + (f" en {location}" if location else "")
    return send_email(to=email, subject=subject, html=html, text=text)
