"""
Utility functions for Lambda handler operations.

This package contains reusable service functions for S3 storage, message
building and SES sending.
"""

__all__ = ['email', 's3', 'ses']
