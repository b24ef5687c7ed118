import os
import smtplib
import ssl
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Optional

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = int(os.environ.get("EMAIL_TIMEOUT_SECONDS", "20"))


class EmailDeliveryError(RuntimeError):
    pass


@dataclass
class SMTPConfig:
    name: str
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    use_tls: bool
    use_ssl: bool
    sender: str


def _bool_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_smtp_config(prefix: str) -> Optional[SMTPConfig]:
    host = os.environ.get(f"{prefix}_HOST")
    port_raw = os.environ.get(f"{prefix}_PORT")
    if not host or not port_raw:
        return None

    try:
        port = int(port_raw)
    except ValueError:
        raise EmailDeliveryError(f"Invalid {prefix}_PORT: {port_raw}")

    user = os.environ.get(f"{prefix}_USER")
    sender = (os.environ.get(f"{prefix}_FROM") or "").replace('"', "").replace("'", "").strip()
    if sender and "@" not in sender and user:
        sender = f"{sender} <{user}>"
    sender = sender or user
    if not sender:
        return None

    return SMTPConfig(
        name=prefix,
        host=host,
        port=port,
        user=user,
        password=os.environ.get(f"{prefix}_PASS"),
        # port 465 speaks implicit TLS; everything else upgrades with STARTTLS
        use_tls=_bool_env(os.environ.get(f"{prefix}_TLS"), default=port != 465),
        use_ssl=_bool_env(os.environ.get(f"{prefix}_SSL"), default=port == 465),
        sender=sender,
    )


def _build_message(sender: str, to_email: str, subject: str, html: str, text: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text)
    message.add_alternative(html, subtype="html")
    return message


def _send_via_config(config: SMTPConfig, to_email: str, subject: str, html: str, text: str) -> None:
    message = _build_message(config.sender, to_email, subject, html, text)

    if config.use_ssl:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(config.host, config.port, context=context, timeout=SMTP_TIMEOUT_SECONDS) as server:
            if config.user and config.password:
                server.login(config.user, config.password)
            server.send_message(message)
        return

    with smtplib.SMTP(config.host, config.port, timeout=SMTP_TIMEOUT_SECONDS) as server:
        server.ehlo()
        if config.use_tls:
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
        if config.user and config.password:
            server.login(config.user, config.password)
        server.send_message(message)


def send_email(to_email: str, subject: str, html: str, text: str) -> None:
    configs: List[SMTPConfig] = [
        config
        for config in (load_smtp_config("EMAIL_PRIMARY"), load_smtp_config("EMAIL_SECONDARY"))
        if config is not None
    ]
    if not configs:
        raise EmailDeliveryError("EMAIL_PRIMARY configuration missing")

    last_error: Optional[Exception] = None
    for config in configs:
        try:
            _send_via_config(config, to_email, subject, html, text)
            logger.info("Email %r sent to %s via %s", subject, to_email, config.name)
            return
        except Exception as exc:
            logger.warning("%s SMTP failed for %s: %s", config.name, to_email, exc)
            last_error = exc

    raise EmailDeliveryError(f"All SMTP relays failed: {last_error}")
