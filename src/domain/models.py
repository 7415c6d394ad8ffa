"""
Data models for the email forwarding domain.

These type-safe data structures define clear contracts between components.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

DEFAULT_REDIRECT_MESSAGE = "This message was redirected. Original sender: "


@dataclass
class EmailMetadata:
    """
    Structured email metadata extracted from an SES receipt notification.

    Attributes:
        message_id: SES message identifier (also the default S3 object name)
        from_address: Original sender header value
        to_addresses: Raw "To" header values
        subject: Email subject line
        timestamp: ISO 8601 timestamp when email was received
        bucket_name: S3 bucket containing the raw email
        object_key: S3 object key for the raw email
    """
    message_id: str
    from_address: str
    to_addresses: List[str]
    subject: str
    timestamp: str
    bucket_name: str
    object_key: str


@dataclass(frozen=True)
class ForwarderSettings:
    """
    Pipeline settings read from the Lambda environment.

    Attributes:
        bucket_name: Bucket holding archived messages when the receipt
            notification does not name one (BUCKET_NAME)
        object_key_prefix: Prefix of archived object keys (OBJECT_KEY_PREFIX)
        error_email_to: Administrator address for failure reports (ERROR_EMAIL_TO)
        redirect_message: Text placed before the original sender in the
            forwarded body (REDIRECT_MESSAGE)
    """
    bucket_name: Optional[str] = None
    object_key_prefix: str = ''
    error_email_to: Optional[str] = None
    redirect_message: str = DEFAULT_REDIRECT_MESSAGE

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'ForwarderSettings':
        env = os.environ if environ is None else environ
        return cls(
            bucket_name=env.get('BUCKET_NAME') or None,
            object_key_prefix=env.get('OBJECT_KEY_PREFIX', ''),
            error_email_to=env.get('ERROR_EMAIL_TO') or None,
            redirect_message=env.get('REDIRECT_MESSAGE', DEFAULT_REDIRECT_MESSAGE),
        )


@dataclass
class ForwardResult:
    """
    Result of forwarding one event record.

    This explicit result type makes success/failure handling clear
    and prevents exceptions from being used for control flow.

    Attributes:
        success: Whether the message was forwarded and the archive deleted
        record_id: SQS message id, or the SES message id for direct events
        metadata: Email metadata (if parsing succeeded)
        recipients: Destinations the message was sent to
        forwarded_message_id: SES id of the forwarded message
        error_message: Error description (if processing failed)
    """
    success: bool
    record_id: str
    metadata: Optional[EmailMetadata] = None
    recipients: List[str] = field(default_factory=list)
    forwarded_message_id: Optional[str] = None
    error_message: Optional[str] = None

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return (
                f"ForwardResult(success=True, record_id={self.record_id}, "
                f"recipients={self.recipients})"
            )
        else:
            return f"ForwardResult(success=False, record_id={self.record_id}, error={self.error_message})"
