"""
Email forwarding pipeline - core business logic.

This module handles the end-to-end forwarding of one inbound email event:
1. Parse the SES receipt notification from the event record
2. Load the address configuration
3. Fetch the archived raw email from S3
4. Resolve the forwarding recipients from the "To" headers
5. Send the wrapped message through SES
6. Delete the archived email from S3

Failures are reported to the administrator (when configured) and returned
as ForwardResult with success=False. No exceptions propagate out of
process_record.
"""

import json
import logging
import traceback
from typing import Any, Dict, Optional

from .address_config import AddressConfig
from .address_resolver import resolve_recipients
from .models import EmailMetadata, ForwarderSettings, ForwardResult
from services import email as email_service
from services import s3 as s3_service
from services import ses as ses_service

logger = logging.getLogger(__name__)


class ForwardingError(Exception):
    """Raised when one or more records of an invocation could not be forwarded."""
    pass


class EmailForwarder:
    """
    Forwards inbound SES email to the recipients resolved from its aliases.

    Configuration is read from the environment for every record, so a
    warm Lambda container picks up configuration changes.
    """

    def process_record(self, record: Dict[str, Any]) -> ForwardResult:
        """
        Forward the email referenced by a single event record.

        Args:
            record: SES, SNS or SQS event record

        Returns:
            ForwardResult with success=True or success=False (errors logged)
        """
        record_id = self._record_id(record)
        logger.info(f"Processing record: {record_id}")

        settings = ForwarderSettings.from_environment()
        metadata = None

        try:
            metadata = self._parse_notification(record, settings)
            logger.info(
                f"Parsed: message_id={metadata.message_id}, from={metadata.from_address}, "
                f"to={metadata.to_addresses}"
            )

            config = AddressConfig.from_environment()

            raw_email = s3_service.fetch_email_from_s3(
                metadata.bucket_name,
                metadata.object_key
            )
            logger.info(f"Fetched {len(raw_email):,} bytes from S3")

            recipients = resolve_recipients(metadata.to_addresses, config)
            logger.info(f"Resolved recipients: {recipients}")

            message = email_service.build_forward_message(
                raw_email=raw_email,
                message_id=metadata.message_id,
                sender=config.sender_address,
                recipients=recipients,
                original_from=metadata.from_address,
                subject=metadata.subject,
                redirect_message=settings.redirect_message
            )

            forwarded_id = ses_service.send_raw_email(
                message,
                source=config.sender_address,
                destinations=recipients
            )
            logger.info(f"Mail redirected: {forwarded_id}")

            version_id = s3_service.delete_email_from_s3(
                metadata.bucket_name,
                metadata.object_key
            )
            logger.info(f"Set S3 delete mark: {version_id}")

            return ForwardResult(
                success=True,
                record_id=record_id,
                metadata=metadata,
                recipients=recipients,
                forwarded_message_id=forwarded_id
            )

        except Exception as e:
            logger.error(f"Failed to forward {record_id}: {e}", exc_info=True)

            self._notify_administrator(e, record, metadata, settings)

            return ForwardResult(
                success=False,
                record_id=record_id,
                metadata=metadata,
                error_message=str(e)
            )

    def _record_id(self, record: Dict[str, Any]) -> str:
        """Identifier of a record: SQS messageId, else the SES/SNS message id."""
        if 'messageId' in record:
            return record['messageId']
        try:
            return record['ses']['mail']['messageId']
        except (KeyError, TypeError):
            pass
        return record.get('Sns', {}).get('MessageId', 'UNKNOWN')

    def _extract_ses_notification(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Extract the SES notification ({'mail', 'receipt'}) from an event record.

        Handles:
        - SES Lambda action (record['ses'])
        - SES -> SNS -> Lambda (record['Sns']['Message'])
        - SES -> SQS and SES -> SNS -> SQS (record['body'])

        Raises:
            ValueError: If notification structure is invalid
            json.JSONDecodeError: If JSON parsing fails
        """
        if 'ses' in record:
            return record['ses']

        if 'Sns' in record:
            logger.info("Unwrapping SNS message (SES -> SNS -> Lambda)")
            return json.loads(record['Sns']['Message'])

        if 'body' in record:
            sqs_body = json.loads(record['body'])

            # Check if wrapped in SNS (optional setup: SES -> SNS -> SQS)
            if sqs_body.get('Type') == 'Notification' and 'Message' in sqs_body:
                logger.info("Unwrapping SNS message (SES -> SNS -> SQS)")
                return json.loads(sqs_body['Message'])
            return sqs_body

        raise ValueError("Unsupported event record: expected SES, SNS or SQS record")

    def _parse_notification(
        self,
        record: Dict[str, Any],
        settings: ForwarderSettings
    ) -> EmailMetadata:
        """
        Parse an event record into email metadata.

        Args:
            record: Event record
            settings: Pipeline settings (fallback bucket and key prefix)

        Returns:
            EmailMetadata: Structured email metadata

        Raises:
            ValueError: If notification structure is invalid
            json.JSONDecodeError: If JSON parsing fails
        """
        ses_notification = self._extract_ses_notification(record)

        # Validate SES notification structure
        if 'mail' not in ses_notification or 'receipt' not in ses_notification:
            raise ValueError("SES notification missing 'mail' or 'receipt' fields")

        mail = ses_notification['mail']
        receipt = ses_notification['receipt']
        common_headers = mail.get('commonHeaders', {})

        message_id = mail.get('messageId')
        if not message_id:
            raise ValueError("SES notification missing mail.messageId")

        # Extract from address (can be list, string, or fallback to source)
        from_field = common_headers.get('from', [])
        if isinstance(from_field, list) and len(from_field) > 0:
            from_address = from_field[0]
        elif isinstance(from_field, str) and from_field:
            from_address = from_field
        else:
            from_address = mail.get('source') or mail.get('returnPath', '')

        # Extract to addresses (can be list or string, normalize to list)
        to_field = common_headers.get('to', [])
        if isinstance(to_field, list):
            to_addresses = to_field
        elif isinstance(to_field, str) and to_field:
            to_addresses = [to_field]
        else:
            to_addresses = []

        # S3 action notifications name the object; Lambda actions do not
        action = receipt.get('action', {})
        if action.get('type') == 'S3' or action.get('bucketName'):
            bucket_name = action.get('bucketName')
            object_key = action.get('objectKey')
        else:
            bucket_name = settings.bucket_name
            object_key = f"{settings.object_key_prefix}{message_id}"

        if not bucket_name or not object_key:
            raise ValueError("Missing S3 location in SES notification (set BUCKET_NAME)")

        return EmailMetadata(
            message_id=message_id,
            from_address=from_address,
            to_addresses=to_addresses,
            subject=common_headers.get('subject', ''),
            timestamp=mail.get('timestamp', ''),
            bucket_name=bucket_name,
            object_key=object_key
        )

    def _notify_administrator(
        self,
        error: Exception,
        record: Dict[str, Any],
        metadata: Optional[EmailMetadata],
        settings: ForwarderSettings
    ) -> None:
        """
        Send the failure details to ERROR_EMAIL_TO (best effort).

        Failures while notifying are logged and swallowed.
        """
        if not settings.error_email_to:
            return

        bucket = metadata.bucket_name if metadata else settings.bucket_name
        key = metadata.object_key if metadata else self._record_id(record)

        try:
            config = AddressConfig.from_environment()

            error_details = {
                'errorType': type(error).__name__,
                'errorMessage': str(error),
                'stackTrace': traceback.format_exception(
                    type(error), error, error.__traceback__
                ),
                'x-ses-event': record,
                'x-s3-requested-object': {'Bucket': bucket, 'Key': key},
            }

            message = email_service.build_error_message(
                sender=config.sender_address,
                recipient=settings.error_email_to,
                domain=config.domain,
                bucket=bucket,
                key=key,
                error_details=error_details
            )

            notification_id = ses_service.send_raw_email(
                message,
                source=config.sender_address,
                destinations=[settings.error_email_to]
            )
            logger.info(f"Error mail sent with id {notification_id}")

        except Exception as e:
            logger.error(f"Sending email to the administrator failed: {e}", exc_info=True)
