"""
AWS Lambda handler for forwarding inbound SES email by alias.

Thin orchestration layer that delegates to EmailForwarder.
Triggered by an SES receipt rule (directly, through SNS, or through SQS).
Failed SQS records are reported as batch item failures; failed SES/SNS
invocations raise so Lambda records the invocation as failed.
"""

import logging
import os
from typing import Dict, Any, List

from domain.email_forwarder import EmailForwarder, ForwardingError

# Configure logging
logger = logging.getLogger()
logger.setLevel(getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO))

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

# Initialize forwarder once at module level (reused across invocations)
email_forwarder = EmailForwarder()


def _is_sqs_record(record: Dict[str, Any]) -> bool:
    return record.get('eventSource') == 'aws:sqs' or 'body' in record


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Forward the emails referenced by an SES, SNS or SQS event.

    Args:
        event: Lambda event with Records
        context: Lambda context

    Returns:
        Dict with batchItemFailures (failed SQS records)

    Raises:
        ForwardingError: If an SES or SNS record could not be forwarded
    """
    logger.info("=" * 70)
    logger.info("SES Alias Forwarder - Started")
    logger.info("=" * 70)

    records = event.get('Records', [])
    logger.info(f"Processing batch of {len(records)} record(s)")

    batch_item_failures: List[Dict[str, str]] = []
    failed_events = []

    for record in records:
        result = email_forwarder.process_record(record)

        if result.success:
            logger.info(f"✓ Forwarded {result.record_id} to {', '.join(result.recipients)}")
            continue

        logger.warning(f"⚠ Failed to forward {result.record_id}: {result.error_message}")
        if _is_sqs_record(record):
            batch_item_failures.append({'itemIdentifier': result.record_id})
        else:
            failed_events.append(result)

    # Log summary
    error_count = len(batch_item_failures) + len(failed_events)
    logger.info("=" * 70)
    logger.info(f"Batch processing complete: {len(records)} record(s)")
    logger.info(f"  Success: {len(records) - error_count}")
    logger.info(f"  Errors: {error_count}")
    logger.info("=" * 70)

    if failed_events:
        raise ForwardingError(
            "; ".join(f"{r.record_id}: {r.error_message}" for r in failed_events)
        )

    return {"batchItemFailures": batch_item_failures}
