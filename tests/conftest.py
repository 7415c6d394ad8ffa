"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('DOMAIN', 'mydomain.com')
os.environ.setdefault('DEFAULT_EMAIL_FROM', 'no-reply')
os.environ.setdefault('DEFAULT_EMAIL_TO', 'me@gmail.com')
os.environ.setdefault('BUCKET_NAME', 'ses-inbound-test')
os.environ.setdefault('LOG_LEVEL', 'INFO')


@pytest.fixture
def aliases():
    """Alias table shared by the address tests."""
    return {
        'info': 'boss@yahoo.com',
        'it-team': 'you@gmail.com',
        'support': 'help@hotmail.com',
    }


@pytest.fixture
def sample_email_content():
    """Sample raw email content in MIME format."""
    return b"""From: "Jane Sender" <sender@example.com>
To: info@mydomain.com
Subject: Test Email Subject
MIME-Version: 1.0
Content-Type: text/plain; charset="UTF-8"

This is a test email body in plain text.
"""
