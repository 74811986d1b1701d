import logging
import smtplib
from email.message import EmailMessage

from app.core.config import get_settings, get_smtp_ctx
from app.models.roles import Role

logger = logging.getLogger(__name__)

settings = get_settings()

HOST = settings.smtp_host
PORT = settings.smtp_port
USER = settings.smtp_username
PWD = settings.smtp_password
MAIL_FROM = settings.mail_from


def _build_registration_invite(
    to_email: str, link: str, company_name: str, role: Role
) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"Invitation to join {company_name}"
    msg["From"] = MAIL_FROM
    msg["To"] = to_email
    msg.set_content(
        f"Hi,\n\nYou have been invited to join {company_name} as {role.label}. "
        f"Create your account here: {link}\n"
    )
    msg.add_alternative(
        f"""<p>Hi,</p>
            <p>You have been invited to join <b>{company_name}</b> as {role.label}.</p>
            <p>Follow this link to create your account: <a href=\"{link}\">{link}</a></p>
            <p>If you did not expect this email, you can safely ignore it.</p>""",
        subtype="html",
    )
    return msg


def send_registration_invite(
    to_email: str, link: str, company_name: str, role: Role
) -> None:
    if not HOST or not MAIL_FROM:
        logger.warning("SMTP is not configured, invitation for %s not sent", to_email)
        return

    msg = _build_registration_invite(to_email, link, company_name, role)
    try:
        ctx = get_smtp_ctx()
        with smtplib.SMTP(HOST, PORT, timeout=20) as smtp:
            smtp.ehlo()
            smtp.starttls(context=ctx)
            smtp.ehlo()
            if USER and PWD:
                smtp.login(USER, PWD)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to deliver registration invite to %s", to_email)
        return

    logger.info("Registration invite sent to %s", to_email)
