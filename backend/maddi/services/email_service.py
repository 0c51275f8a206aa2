"""
Transactional email through Resend.

Every message is described by a template type plus template data; this module
renders subject and HTML and hands them to Resend. When RESEND_API_KEY is not
configured the email is only logged. Errors propagate to the caller (the
outbox), which logs them and never lets them affect a state transition.
"""

import asyncio
from dataclasses import dataclass, field
from html import escape
from typing import Any, Callable

import resend

from maddi.core.config import get_settings
from maddi.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EmailMessage:
    recipient_email: str
    template_type: str
    recipient_name: str
    template_data: dict[str, Any] = field(default_factory=dict)


def _dates(data: dict) -> str:
    return f"{escape(str(data.get('startDate', '')))} al {escape(str(data.get('endDate', '')))}"


def _title(data: dict) -> str:
    return escape(str(data.get("billboardTitle", "tu espectacular")))


TEMPLATES: dict[str, tuple[str, Callable[[dict], str]]] = {
    "booking_request": (
        "Nueva solicitud de reserva",
        lambda d: f"Recibiste una nueva solicitud para \"{_title(d)}\" del {_dates(d)}.",
    ),
    "booking_approved": (
        "Tu reserva fue aprobada",
        lambda d: f"Tu reserva en \"{_title(d)}\" del {_dates(d)} fue aprobada.",
    ),
    "booking_rejected": (
        "Tu reserva fue rechazada",
        lambda d: f"Tu solicitud para \"{_title(d)}\" del {_dates(d)} fue rechazada.",
    ),
    "booking_cancelled": (
        "Reserva cancelada",
        lambda d: f"La reserva en \"{_title(d)}\" del {_dates(d)} fue cancelada por el anunciante.",
    ),
    "campaign_started": (
        "¡Tu campaña inicia hoy!",
        lambda d: f"Tu campaña en \"{_title(d)}\" ha comenzado oficialmente ({_dates(d)}).",
    ),
    "campaign_started_owner": (
        "Campaña activa hoy",
        lambda d: (
            f"La campaña de {escape(str(d.get('businessName', 'Anunciante')))} "
            f"en \"{_title(d)}\" inició hoy ({_dates(d)})."
        ),
    ),
    "campaign_ended": (
        "Tu campaña ha finalizado",
        lambda d: f"Tu campaña en \"{_title(d)}\" ha terminado. ¡Déjanos una reseña!",
    ),
    "admin_invite": (
        "Invitación al Panel de Administración de Maddi",
        lambda d: (
            f"Has sido invitado como <strong>{escape(str(d.get('roleLabel', 'Administrador')))}</strong>. "
            f"<a href=\"{escape(str(d.get('inviteUrl', '')))}\">Aceptar invitación</a>. "
            f"Este enlace expira en {escape(str(d.get('expiresInDays', 7)))} días."
        ),
    ),
}


def render_email(message: EmailMessage) -> tuple[str, str]:
    """Return (subject, html) for a message. Raises KeyError for unknown templates."""
    subject, body = TEMPLATES[message.template_type]
    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; max-width: 480px;">
<p>Hola {escape(message.recipient_name)},</p>
<p>{body(message.template_data)}</p>
<p style="color: #888; font-size: 12px;">Maddi</p>
</body>
</html>"""
    return subject, html


async def send_email(message: EmailMessage) -> None:
    settings = get_settings()
    subject, html = render_email(message)

    if not settings.RESEND_API_KEY:
        logger.info(
            "email_not_configured",
            to=message.recipient_email,
            template=message.template_type,
            subject=subject,
        )
        return

    resend.api_key = settings.RESEND_API_KEY
    params = {
        "from": settings.EMAIL_FROM,
        "to": [message.recipient_email],
        "subject": subject,
        "html": html,
    }
    # The Resend SDK is synchronous; keep it off the event loop and bounded
    response = await asyncio.wait_for(
        asyncio.to_thread(resend.Emails.send, params),
        timeout=settings.RESEND_TIMEOUT_SECONDS,
    )
    logger.info("email_sent", to=message.recipient_email, template=message.template_type, id=response.get("id"))
