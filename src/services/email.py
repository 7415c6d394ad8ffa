"""
Email building utilities for Lambda handlers.

This module builds the outbound messages sent by the forwarder: the
redirected copy of an inbound message and the administrator error report.
"""

import json
import logging
from email.message import EmailMessage
from email.mime.base import MIMEBase
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def build_forward_message(
    raw_email: bytes,
    message_id: str,
    sender: str,
    recipients: List[str],
    original_from: str,
    subject: str,
    redirect_message: str
) -> EmailMessage:
    """
    Wrap an inbound message into a new message for its resolved recipients.

    The original bytes are attached unchanged as message/rfc822 so the recipient
    keeps every original header; replies go to the original sender.

    Args:
        raw_email: Raw bytes of the inbound message
        message_id: SES message id (used for the attachment name)
        sender: From address of the forwarded message
        recipients: Resolved destination addresses
        original_from: From header of the inbound message
        subject: Subject of the inbound message
        redirect_message: Text placed before the original sender in the body

    Returns:
        EmailMessage ready to be sent

    Example:
        >>> msg = build_forward_message(
        ...     raw_email=b"From: a@example.com\\r\\nSubject: Hi\\r\\n\\r\\nHello",
        ...     message_id="abc123",
        ...     sender="no-reply@mydomain.com",
        ...     recipients=["me@gmail.com"],
        ...     original_from="a@example.com",
        ...     subject="Hi",
        ...     redirect_message="Redirected from: "
        ... )
        >>> msg['To']
        'me@gmail.com'
    """
    msg = EmailMessage()
    msg['From'] = sender
    msg['To'] = ', '.join(recipients)
    if original_from:
        msg['Reply-To'] = original_from
    msg['Subject'] = subject or ''

    msg.set_content(f"{redirect_message}{original_from}\n\n")

    # Raw bytes are written back verbatim, keeping signed headers intact
    original = MIMEBase('message', 'rfc822')
    original.set_payload(raw_email.decode('ascii', 'surrogateescape'))
    original['Content-Transfer-Encoding'] = '8bit'
    original.add_header('Content-Disposition', 'attachment', filename=f"{message_id}.eml")

    msg.make_mixed()
    msg.attach(original)

    logger.info(
        f"Built forward message: to={recipients}, reply_to={original_from}, "
        f"attachment={message_id}.eml ({len(raw_email):,} bytes)"
    )
    return msg


def build_error_message(
    sender: str,
    recipient: str,
    domain: Optional[str],
    bucket: Optional[str],
    key: str,
    error_details: Dict[str, Any]
) -> EmailMessage:
    """
    Build the administrator notification for a failed forward.

    Args:
        sender: From address of the notification
        recipient: Administrator address
        domain: Forwarding domain (for context)
        bucket: Bucket of the archived message
        key: Object key / SES message id of the archived message
        error_details: JSON-serializable description of the failure

    Returns:
        EmailMessage with the error details attached as JSON
    """
    msg = EmailMessage()
    msg['From'] = sender
    msg['To'] = recipient
    msg['Subject'] = f'An error occurred redirecting message ID "{key}"'

    msg.set_content(
        "See the attachment for the error's details.\n"
        "\n"
        f"Domain: {domain}\n"
        f"Bucket: {bucket}\n"
        f"Original Message ID / S3 Key: {key}\n"
    )

    details = json.dumps(error_details, indent=4, default=str)
    msg.add_attachment(
        details.encode('utf-8'),
        maintype='application',
        subtype='json',
        filename=f"error_{key}.json"
    )
    return msg
