from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.mime.base import MIMEBase
from email.utils import formataddr
from email import encoders
import mimetypes
import smtplib
import ssl
import time
import logging
from typing import Dict, Any, List, Optional, Tuple

from config import SMTP_HOST, SMTP_PORT, SMTP_TIMEOUT

logger = logging.getLogger(__name__)

Attachment = Tuple[str, bytes]


class MailValidationError(ValueError):
    """Raised before any SMTP connection is attempted."""


def _timestamp() -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S")


def clean_recipients(to_emails: List[str]) -> List[str]:
    """Split comma separated entries and drop blanks."""
    recipients: List[str] = []
    for entry in to_emails or []:
        recipients.extend(p.strip() for p in (entry or "").split(",") if p.strip())
    return recipients


def _attach_files(msg: MIMEMultipart, attachments: List[Attachment]) -> None:
    for filename, content in attachments or []:
        ctype, _ = mimetypes.guess_type(filename)
        if not ctype:
            ctype = "application/octet-stream"
        maintype, subtype = ctype.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", f'attachment; filename="{filename}"')
        msg.attach(part)


def build_message(
    from_email: str,
    recipients: List[str],
    subject: str,
    html_content: str,
    sender_name: Optional[str] = None,
    attachments: List[Attachment] = None,
) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = formataddr((sender_name, from_email)) if sender_name else from_email
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject
    msg.attach(MIMEText(html_content, "html"))
    _attach_files(msg, attachments)
    return msg


def send_mail(
    from_email: str,
    app_password: str,
    to_emails: List[str],
    subject: str,
    html_content: str,
    sender_name: Optional[str] = None,
    attachments: List[Attachment] = None,
) -> Dict[str, Any]:
    """
    Send one message over SMTP SSL with the sender's own credentials.
    Single attempt, no retries. Input problems raise MailValidationError;
    SMTP failures come back as a dict with ``status == "error"``.
    """
    recipients = clean_recipients(to_emails)
    if not recipients:
        raise MailValidationError("At least one recipient is required")
    if not all([from_email, app_password, subject]):
        raise MailValidationError("Missing required parameters: from_email, app_password or subject")

    msg = build_message(from_email, recipients, subject, html_content or "", sender_name, attachments)
    logger.info(f"Sending email from {from_email} to {recipients} with subject: {subject}")

    try:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, context=context, timeout=SMTP_TIMEOUT) as server:
            server.login(from_email, app_password)
            rejected = server.send_message(msg, from_addr=from_email, to_addrs=recipients)

        if rejected:
            logger.warning(f"Some recipients were rejected: {rejected}")
            return {
                "status": "partial_success",
                "message": f"Email sent but some recipients rejected: {list(rejected)}",
                "recipients": recipients,
                "rejected_recipients": list(rejected),
                "timestamp": _timestamp(),
            }
        logger.info("Email sent successfully!")
        return {
            "status": "success",
            "message": "Email sent successfully!",
            "recipients": recipients,
            "timestamp": _timestamp(),
        }

    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP Authentication failed: {e}")
        return {
            "status": "error",
            "message": "SMTP Authentication failed. Check email/app password.",
            "error": str(e),
            "timestamp": _timestamp(),
        }
    except smtplib.SMTPRecipientsRefused as e:
        logger.error(f"Recipients refused: {e}")
        return {
            "status": "error",
            "message": "Recipient email address refused",
            "error": str(e),
            "timestamp": _timestamp(),
        }
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP error: {e}")
        return {
            "status": "error",
            "message": "Failed to send email",
            "error": str(e),
            "timestamp": _timestamp(),
        }
