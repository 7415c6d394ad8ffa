"""
S3 operations utilities for Lambda handlers.

This module fetches archived inbound messages written by the SES receipt
rule and removes them once they have been forwarded.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Configure S3 client with timeouts to prevent infinite hangs
s3_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,  # 10 seconds to establish connection
    read_timeout=60      # 60 seconds max for reading response
)

# Initialize S3 client at module level (thread-safe, reused across invocations)
s3_client = boto3.client('s3', config=s3_config)
logger.info("S3 client initialized with timeouts: connect=10s, read=60s, max_attempts=1")


def fetch_email_from_s3(bucket: str, key: str) -> bytes:
    """
    Fetch raw email content from S3.

    Args:
        bucket: S3 bucket name
        key: S3 object key (the SES message id, optionally prefixed)

    Returns:
        bytes: The raw email content as bytes

    Raises:
        ValueError: If the bucket or object does not exist
        ClientError: For any other S3 failure

    Example:
        >>> email_bytes = fetch_email_from_s3(
        ...     bucket="my-ses-bucket",
        ...     key="o3vrnil0e2ic28trm7dfhrc2v0clambda4nbp0g1"
        ... )
        >>> print(len(email_bytes))
        12345
    """
    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
        return response['Body'].read()
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', '')
        if error_code == 'NoSuchKey':
            logger.error(f"S3 object not found: s3://{bucket}/{key}")
            raise ValueError(f"Email file not found in S3: {key}")
        elif error_code == 'NoSuchBucket':
            logger.error(f"S3 bucket not found: {bucket}")
            raise ValueError(f"S3 bucket not found: {bucket}")
        else:
            logger.error(f"Failed to fetch from S3 s3://{bucket}/{key}: {e}")
            raise
    except Exception as e:
        logger.error(f"Failed to fetch from S3 s3://{bucket}/{key}: {e}")
        raise


def delete_email_from_s3(bucket: str, key: str) -> Optional[str]:
    """
    Delete the archived raw email from S3.

    On a versioned bucket this places a delete marker.

    Args:
        bucket: S3 bucket name
        key: S3 object key

    Returns:
        The version ID of the delete marker, or None on unversioned buckets

    Raises:
        ValueError: If bucket or key is empty
        ClientError: If S3 operation fails
    """
    if not bucket:
        raise ValueError("S3 bucket name cannot be empty")
    if not key:
        raise ValueError("S3 object key cannot be empty")

    try:
        response = s3_client.delete_object(Bucket=bucket, Key=key)
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        error_message = e.response.get('Error', {}).get('Message', str(e))

        logger.error(
            f"Failed to delete email from S3: "
            f"bucket={bucket}, key={key}, "
            f"error_code={error_code}, error_message={error_message}"
        )

        raise

    version_id = response.get('VersionId')
    logger.info(f"Deleted s3://{bucket}/{key} (delete marker version: {version_id})")
    return version_id
