# services/imap_inbox.py
import email
import imaplib
import logging
from email.header import decode_header, make_header
from email.utils import parseaddr, parsedate_to_datetime
from typing import Dict, Any, List, Optional

from config import IMAP_HOST, IMAP_PORT, IMAP_FETCH_LIMIT

logger = logging.getLogger(__name__)


class InboxError(Exception):
    """IMAP login or fetch failed."""


def _decode(value: Optional[str]) -> str:
    if not value:
        return ""
    return str(make_header(decode_header(value)))


def _body(msg: email.message.Message) -> str:
    """Prefer the HTML part, fall back to plain text."""
    html, text = None, None
    parts = msg.walk() if msg.is_multipart() else [msg]
    for part in parts:
        if part.get_content_disposition() == "attachment":
            continue
        ctype = part.get_content_type()
        if ctype not in ("text/html", "text/plain"):
            continue
        payload = part.get_payload(decode=True)
        if payload is None:
            continue
        decoded = payload.decode(part.get_content_charset() or "utf-8", errors="replace")
        if ctype == "text/html" and html is None:
            html = decoded
        elif ctype == "text/plain" and text is None:
            text = decoded
    return html if html is not None else (text or "")


def _attachment_names(msg: email.message.Message) -> List[str]:
    return [
        _decode(part.get_filename())
        for part in msg.walk()
        if part.get_content_disposition() == "attachment" and part.get_filename()
    ]


def parse_message(raw: bytes) -> Dict[str, Any]:
    msg = email.message_from_bytes(raw)
    sender_name, sender_addr = parseaddr(_decode(msg.get("From")))
    receiver_name, receiver_addr = parseaddr(_decode(msg.get("To")))
    try:
        sent_at = parsedate_to_datetime(msg.get("Date")) if msg.get("Date") else None
    except (TypeError, ValueError):
        sent_at = None

    return {
        "message_id": (msg.get("Message-ID") or "").strip() or None,
        "from_address": sender_addr,
        "sender_name": sender_name or None,
        "to_address": receiver_addr or _decode(msg.get("To")),
        "receiver_name": receiver_name or None,
        "subject": _decode(msg.get("Subject")),
        "content": _body(msg),
        "attachments": _attachment_names(msg),
        "date": sent_at,
    }


def fetch_recent(user: str, password: str, limit: int = IMAP_FETCH_LIMIT) -> List[Dict[str, Any]]:
    """
    Fetch the ``limit`` most recent messages of INBOX, newest first.
    Raises InboxError on any IMAP failure.
    """
    if not user or not password:
        raise InboxError("IMAP credentials are not configured")

    try:
        with imaplib.IMAP4_SSL(IMAP_HOST, IMAP_PORT) as conn:
            conn.login(user, password)
            conn.select("INBOX", readonly=True)
            typ, data = conn.search(None, "ALL")
            if typ != "OK":
                raise InboxError(f"IMAP search failed: {typ}")

            ids = data[0].split()[-limit:] if limit > 0 else []
            messages = []
            for msg_id in reversed(ids):
                typ, parts = conn.fetch(msg_id, "(RFC822)")
                if typ != "OK":
                    logger.warning(f"Could not fetch message {msg_id!r}: {typ}")
                    continue
                for part in parts:
                    if isinstance(part, tuple):
                        messages.append(parse_message(part[1]))
            return messages

    except imaplib.IMAP4.error as e:
        logger.error(f"IMAP error for {user}: {e}")
        raise InboxError(str(e))
    except OSError as e:
        logger.error(f"IMAP connection to {IMAP_HOST}:{IMAP_PORT} failed: {e}")
        raise InboxError(str(e))
