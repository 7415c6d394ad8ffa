"""
Tests for the SES alias forwarder Lambda handler.
"""

import json
import pytest
from unittest.mock import Mock, patch, MagicMock
from botocore.exceptions import ClientError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

import ses_forward_handler
from domain.email_forwarder import ForwardingError

ENVIRONMENT = {
    'DOMAIN': 'mydomain.com',
    'DEFAULT_EMAIL_FROM': 'no-reply',
    'DEFAULT_EMAIL_TO': 'me@gmail.com',
    'ALIASES': '{"info": "boss@yahoo.com", "support": "help@hotmail.com"}',
    'BUCKET_NAME': 'ses-inbound-test',
}


def _load_event(name):
    with open(os.path.join(os.path.dirname(__file__), 'events', name)) as f:
        return json.load(f)


@pytest.fixture
def ses_event():
    return _load_event('ses-event.json')


@pytest.fixture
def sqs_event():
    return _load_event('sqs-event.json')


@pytest.fixture
def mock_context():
    """Mock Lambda context."""
    context = Mock()
    context.request_id = "test-request-id"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test"
    context.function_name = "ses-alias-forwarder-test"
    return context


class TestLambdaHandler:
    """Test the main Lambda handler function."""

    @patch.dict(os.environ, ENVIRONMENT, clear=True)
    @patch('services.ses.ses_client')
    @patch('services.s3.s3_client')
    def test_ses_event_success(self, mock_s3_client, mock_ses_client, ses_event, mock_context, sample_email_content):
        """Test forwarding a direct SES receipt event."""
        mock_s3_client.get_object.return_value = {
            'Body': MagicMock(read=lambda: sample_email_content)
        }
        mock_s3_client.delete_object.return_value = {'VersionId': 'v1'}
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'forwarded-1'}

        result = ses_forward_handler.lambda_handler(ses_event, mock_context)

        assert result == {"batchItemFailures": []}
        send_kwargs = mock_ses_client.send_raw_email.call_args[1]
        # it-team has no alias here and falls back to the default recipient
        assert send_kwargs['Destinations'] == ['boss@yahoo.com', 'me@gmail.com']
        mock_s3_client.delete_object.assert_called_once()

    @patch.dict(os.environ, ENVIRONMENT, clear=True)
    @patch('services.ses.ses_client')
    @patch('services.s3.s3_client')
    def test_ses_event_failure_raises(self, mock_s3_client, mock_ses_client, ses_event, mock_context):
        """Test that a failed SES invocation is surfaced to Lambda."""
        mock_s3_client.get_object.side_effect = ClientError(
            {'Error': {'Code': 'NoSuchKey', 'Message': 'The specified key does not exist.'}},
            'GetObject'
        )

        with pytest.raises(ForwardingError, match="o3vrnil0e2ic28trm7dfhrc2v0clambda4nbp0g1"):
            ses_forward_handler.lambda_handler(ses_event, mock_context)

    @patch.dict(os.environ, ENVIRONMENT, clear=True)
    @patch('services.ses.ses_client')
    @patch('services.s3.s3_client')
    def test_sqs_event_success(self, mock_s3_client, mock_ses_client, sqs_event, mock_context, sample_email_content):
        """Test forwarding an SES notification delivered through SQS."""
        mock_s3_client.get_object.return_value = {
            'Body': MagicMock(read=lambda: sample_email_content)
        }
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'forwarded-1'}

        result = ses_forward_handler.lambda_handler(sqs_event, mock_context)

        assert result == {"batchItemFailures": []}
        mock_s3_client.get_object.assert_called_once_with(
            Bucket='ses-emails-123456789012-dev',
            Key='test-email-key'
        )
        send_kwargs = mock_ses_client.send_raw_email.call_args[1]
        assert send_kwargs['Destinations'] == ['help@hotmail.com']

    @patch.dict(os.environ, ENVIRONMENT, clear=True)
    @patch('services.ses.ses_client')
    @patch('services.s3.s3_client')
    def test_sqs_failures_reported_per_record(self, mock_s3_client, mock_ses_client, mock_context, sample_email_content):
        """Test that only failed SQS records are returned for retry."""
        def notification(key):
            return json.dumps({
                "notificationType": "Received",
                "mail": {
                    "messageId": key,
                    "commonHeaders": {
                        "from": ["sender@example.com"],
                        "to": ["info@mydomain.com"],
                        "subject": "Test"
                    },
                    "timestamp": "2024-11-05T10:30:00.000Z"
                },
                "receipt": {
                    "action": {
                        "type": "S3",
                        "bucketName": "test-bucket",
                        "objectKey": key
                    }
                }
            })

        event = {
            "Records": [
                {"messageId": "msg-ok", "eventSource": "aws:sqs", "body": notification("email-ok")},
                {"messageId": "msg-invalid-json", "eventSource": "aws:sqs", "body": "not valid json"},
                {"messageId": "msg-missing", "eventSource": "aws:sqs", "body": notification("email-missing")},
            ]
        }

        def get_object(Bucket, Key):
            if Key == 'email-missing':
                raise ClientError(
                    {'Error': {'Code': 'NoSuchKey', 'Message': 'The specified key does not exist.'}},
                    'GetObject'
                )
            return {'Body': MagicMock(read=lambda: sample_email_content)}

        mock_s3_client.get_object.side_effect = get_object
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'forwarded-1'}

        result = ses_forward_handler.lambda_handler(event, mock_context)

        assert result == {"batchItemFailures": [
            {"itemIdentifier": "msg-invalid-json"},
            {"itemIdentifier": "msg-missing"},
        ]}
        mock_s3_client.delete_object.assert_called_once_with(Bucket='test-bucket', Key='email-ok')

    @patch.dict(os.environ, ENVIRONMENT, clear=True)
    def test_empty_event(self, mock_context):
        """Test handler with no records."""
        result = ses_forward_handler.lambda_handler({}, mock_context)

        assert result == {"batchItemFailures": []}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
