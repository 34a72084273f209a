"""
Unit tests for AWS SigV4 signing.

Uses the example request from the AWS Signature Version 4 documentation
(IAM ListUsers, 2015-08-30).
"""

from datetime import datetime, timezone

from wingetwizard.ai.providers.aws_auth import sign_request, signing_key

ACCESS_KEY = "AKIDEXAMPLE"
SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
SIGNING_TIME = datetime(2015, 8, 30, 12, 36, 0, tzinfo=timezone.utc)


class TestSignatureV4:
    """Tests for sign_request and signing_key."""

    def test_signing_key(self):
        """Test key derivation against the documented value."""
        key = signing_key(SECRET_KEY, "20150830", "us-east-1", "iam")
        assert key.hex() == "c4afb1cc5771d871763a393e44b703571b55cc28424d1a5e86da6ed3c154a4b9"

    def test_documented_signature(self):
        """Test the full signature against the documented example."""
        headers = sign_request(
            "GET",
            "https://iam.amazonaws.com/?Action=ListUsers&Version=2010-05-08",
            region="us-east-1",
            service="iam",
            access_key=ACCESS_KEY,
            secret_key=SECRET_KEY,
            headers={"Content-Type": "application/x-www-form-urlencoded; charset=utf-8"},
            now=SIGNING_TIME,
        )

        assert headers["X-Amz-Date"] == "20150830T123600Z"
        assert headers["Host"] == "iam.amazonaws.com"
        assert headers["Authorization"] == (
            "AWS4-HMAC-SHA256 "
            "Credential=AKIDEXAMPLE/20150830/us-east-1/iam/aws4_request, "
            "SignedHeaders=content-type;host;x-amz-date, "
            "Signature=5d672d79c15b13162d9279b0855cfba6789a8edb4c82c400e06b5924a6f2b5d7"
        )

    def test_input_headers_preserved(self):
        """Test that caller headers are returned alongside the signature."""
        headers = sign_request(
            "POST",
            "https://bedrock-runtime.us-east-1.amazonaws.com/model/x/invoke",
            region="us-east-1",
            service="bedrock",
            access_key=ACCESS_KEY,
            secret_key=SECRET_KEY,
            body=b"{}",
            headers={"Content-Type": "application/json"},
            now=SIGNING_TIME,
        )
        assert headers["Content-Type"] == "application/json"

    def test_body_changes_signature(self):
        """Test that the payload hash is part of the signature."""
        def sign(body):
            return sign_request(
                "POST", "https://bedrock-runtime.us-east-1.amazonaws.com/model/x/invoke",
                "us-east-1", "bedrock", ACCESS_KEY, SECRET_KEY, body=body, now=SIGNING_TIME,
            )["Authorization"]

        assert sign(b'{"a": 1}') != sign(b'{"a": 2}')
