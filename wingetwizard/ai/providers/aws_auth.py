"""
AWS Signature Version 4

Request signing for Bedrock calls made with an access/secret key pair.
"""

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlsplit

ALGORITHM = "AWS4-HMAC-SHA256"


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the per-day, per-region, per-service signing key."""
    k_date = _hmac(("AWS4" + secret_key).encode("utf-8"), date_stamp)
    k_region = hmac.new(k_date, region.encode("utf-8"), hashlib.sha256).digest()
    k_service = hmac.new(k_region, service.encode("utf-8"), hashlib.sha256).digest()
    return hmac.new(k_service, b"aws4_request", hashlib.sha256).digest()


def _canonical_uri(path: str) -> str:
    # Non-S3 services sign the already-encoded path encoded once more
    return quote(path or "/", safe="/-_.~")


def _canonical_query(query: str) -> str:
    pairs = parse_qsl(query, keep_blank_values=True)
    encoded = sorted((quote(k, safe="-_.~"), quote(v, safe="-_.~")) for k, v in pairs)
    return "&".join(f"{k}={v}" for k, v in encoded)


def sign_request(
    method: str,
    url: str,
    region: str,
    service: str,
    access_key: str,
    secret_key: str,
    body: bytes = b"",
    headers: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Compute SigV4 headers for a request.

    Args:
        method: HTTP method
        url: Full request URL (path already percent-encoded)
        region: AWS region, e.g. "us-east-1"
        service: Signing name, e.g. "bedrock"
        access_key: AWS access key id
        secret_key: AWS secret access key
        body: Exact request body bytes
        headers: Extra headers to sign (e.g. content-type)
        now: Signing time (defaults to current UTC time)

    Returns:
        The input headers plus host, x-amz-date and Authorization
    """
    now = now or datetime.now(timezone.utc)
    amz_date = now.strftime("%Y%m%dT%H%M%SZ")
    date_stamp = now.strftime("%Y%m%d")

    parts = urlsplit(url)
    signed: Dict[str, str] = {k.lower(): " ".join(str(v).split()) for k, v in (headers or {}).items()}
    signed["host"] = parts.netloc
    signed["x-amz-date"] = amz_date

    signed_header_names = ";".join(sorted(signed))
    canonical_headers = "".join(f"{name}:{signed[name]}\n" for name in sorted(signed))

    canonical_request = "\n".join([
        method.upper(),
        _canonical_uri(parts.path),
        _canonical_query(parts.query),
        canonical_headers,
        signed_header_names,
        _sha256_hex(body),
    ])

    scope = f"{date_stamp}/{region}/{service}/aws4_request"
    string_to_sign = "\n".join([
        ALGORITHM,
        amz_date,
        scope,
        _sha256_hex(canonical_request.encode("utf-8")),
    ])

    signature = hmac.new(
        signing_key(secret_key, date_stamp, region, service),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    result = dict(headers or {})
    result["Host"] = parts.netloc
    result["X-Amz-Date"] = amz_date
    result["Authorization"] = (
        f"{ALGORITHM} Credential={access_key}/{scope}, "
        f"SignedHeaders={signed_header_names}, Signature={signature}"
    )
    return result
