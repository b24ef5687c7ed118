import logging
from typing import Callable, Optional, Tuple

from email_templates import (
    build_onspot_pass_email,
    build_payment_rejected_email,
    build_payment_verified_email,
)
from emailer import send_email

logger = logging.getLogger(__name__)


def _deliver(to_email: Optional[str], build: Callable[[], Tuple[str, str, str]]) -> None:
    if not to_email:
        raise ValueError("missing recipient email")
    subject, html, text = build()
    send_email(to_email, subject, html, text)


def send_payment_verified_email(to_email: str, name: str, pass_type: int) -> None:
    _deliver(to_email, lambda: build_payment_verified_email(name or "Participant", pass_type))


def send_payment_rejected_email(to_email: str, name: str, pass_type: int, rejection_reason: str) -> None:
    _deliver(to_email, lambda: build_payment_rejected_email(name or "Participant", pass_type, rejection_reason))


def send_onspot_pass_email(to_email: str, name: str, pass_type: int, user_id: int) -> None:
    _deliver(to_email, lambda: build_onspot_pass_email(name or "Participant", pass_type, user_id))


def notify_safely(description: str, send: Callable[..., None], *args, **kwargs) -> Optional[str]:
    """Run ``send`` and turn any failure into a warning string.

    State transitions commit before notifications go out, so a failed email is
    reported alongside a successful result rather than as an error.
    """
    try:
        send(*args, **kwargs)
        return None
    except Exception as exc:
        logger.warning("Failed to send %s email: %s", description, exc)
        return f"{description} email failed to send"
