"""
SES sending utilities for Lambda handlers.

Sends fully built MIME messages through Amazon SES.
"""

import logging
import os
from email import policy
from email.message import EmailMessage
from typing import List

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Configure SES client with timeouts (no retries)
ses_config = Config(
    retries={
        'max_attempts': 1,
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=30
)

# SES is regional: SES_REGION wins over the Lambda region
region = os.environ.get(
    'SES_REGION',
    os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-east-1'))
)

# Module-level client (reused across invocations)
ses_client = boto3.client('ses', region_name=region, config=ses_config)


def send_raw_email(message: EmailMessage, source: str, destinations: List[str]) -> str:
    """
    Send a MIME message through SES.

    Args:
        message: Complete message (headers, body and attachments)
        source: Envelope sender, must be verified in SES
        destinations: Envelope recipients

    Returns:
        str: SES message id of the sent message

    Raises:
        ValueError: If there are no destinations
        ClientError: If SES rejects the message
    """
    if not destinations:
        raise ValueError("At least one destination is required")

    try:
        response = ses_client.send_raw_email(
            Source=source,
            Destinations=list(destinations),
            RawMessage={'Data': message.as_bytes(policy=policy.SMTP)}
        )
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        logger.error(
            f"SES rejected message from {source} to {destinations}: "
            f"error_code={error_code}, error={e}"
        )
        raise

    message_id = response['MessageId']
    logger.info(f"Sent message {message_id} from {source} to {', '.join(destinations)}")
    return message_id
