import os
from html import escape
from typing import Optional, Tuple

from models import PASS_LABELS

FESTIVAL_NAME = os.environ.get("FESTIVAL_NAME", "TechUtsav \"PARADIGM\" '26")
SIGNATURE_TEXT = (
    "Regards,\n"
    "TechUtsav Organising Team\n"
)
SIGNATURE_HTML = "Regards,<br><strong>TechUtsav Organising Team</strong>"

NEXT_ACTIONS = {
    1: "We look forward to your participation in the events at TechUtsav!",
    2: "We look forward to your participation and presentations at TechUtsav!",
    3: "We look forward to your participation, presentations and submissions at TechUtsav!",
    4: "We look forward to your full participation and all submissions at TechUtsav!",
}


def pass_label(pass_type: int) -> str:
    return PASS_LABELS.get(pass_type, f"Pass {pass_type}")


def _wrap(title: str, body_html: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1b1f24;">
        <div style="max-width: 560px; margin: 0 auto; padding: 24px; border: 1px solid #e6e6e6; border-radius: 12px;">
          <h2 style="margin-top: 0;">{escape(title)}</h2>
          {body_html}
          <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
          <p style="margin-bottom: 0;">{SIGNATURE_HTML}</p>
        </div>
      </body>
    </html>
    """


def build_payment_verified_email(name: str, pass_type: int, next_action: Optional[str] = None) -> Tuple[str, str, str]:
    label = pass_label(pass_type)
    next_action = next_action if next_action is not None else NEXT_ACTIONS.get(pass_type)
    subject = f"Payment verified: {label}"
    text = (
        f"Hi {name},\n\n"
        f"Your payment for {label} has been verified. You are now registered for {FESTIVAL_NAME}.\n\n"
        + (f"{next_action}\n\n" if next_action else "")
        + SIGNATURE_TEXT
    )
    body = (
        f"<p>Hi <strong>{escape(name)}</strong>,</p>"
        f"<p>Your payment for <strong>{escape(label)}</strong> has been verified. "
        f"You are now registered for <strong>{escape(FESTIVAL_NAME)}</strong>.</p>"
        + (f"<p>{escape(next_action)}</p>" if next_action else "")
    )
    return subject, _wrap("Payment verified", body), text


def build_payment_rejected_email(name: str, pass_type: int, rejection_reason: str) -> Tuple[str, str, str]:
    label = pass_label(pass_type)
    subject = f"Payment could not be verified: {label}"
    text = (
        f"Hi {name},\n\n"
        f"We could not verify your payment for {label}.\n"
        f"Reason: {rejection_reason}\n\n"
        "Please submit a fresh payment with the correct transaction details.\n\n"
        + SIGNATURE_TEXT
    )
    body = (
        f"<p>Hi <strong>{escape(name)}</strong>,</p>"
        f"<p>We could not verify your payment for <strong>{escape(label)}</strong>.</p>"
        f"<p><strong>Reason:</strong> {escape(rejection_reason)}</p>"
        "<p>Please submit a fresh payment with the correct transaction details.</p>"
    )
    return subject, _wrap("Payment not verified", body), text


def build_onspot_pass_email(name: str, pass_type: int, user_id: int) -> Tuple[str, str, str]:
    label = pass_label(pass_type)
    subject = f"Your {FESTIVAL_NAME} pass: {label}"
    text = (
        f"Hi {name},\n\n"
        f"You have been registered on-spot for {label}.\n"
        f"Show this registration id at the entry gate: {user_id}\n\n"
        + SIGNATURE_TEXT
    )
    body = (
        f"<p>Hi <strong>{escape(name)}</strong>,</p>"
        f"<p>You have been registered on-spot for <strong>{escape(label)}</strong>.</p>"
        "<p>Show this registration id at the entry gate:</p>"
        f"<p style=\"font-size: 22px; text-align: center; letter-spacing: 2px;\"><strong>{user_id}</strong></p>"
    )
    return subject, _wrap("On-spot registration confirmed", body), text
