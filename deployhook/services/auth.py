"""HMAC-SHA256 verification of webhook payloads."""

import binascii
import hashlib
import hmac

from deployhook.errors import (
    MalformedSignature,
    MissingSignature,
    SignatureMismatch,
    UnexpectedSignature,
)

SIGNATURE_PREFIX = "sha256="


def strip_signature_prefix(header: str | None) -> bytes | None:
    """Turn an ``X-Hub-Signature-256`` header value into bare hex bytes."""
    if header is None:
        return None
    value = header.strip()
    if value.startswith(SIGNATURE_PREFIX):
        value = value[len(SIGNATURE_PREFIX) :]
    return value.encode("ascii", errors="replace")


def validate_signature(
    payload: bytes,
    secret: bytes | None,
    signature_hex: bytes | None,
) -> None:
    """Check a payload against the secret configured for its repository.

    Verification only happens when both a secret and a signature are present.
    When neither is present the payload is accepted unverified; when exactly
    one is present the request is rejected.

    Args:
        payload: The exact request body that was signed.
        secret: The resolved secret for the repository, if any.
        signature_hex: The hex-encoded HMAC sent by the caller, if any.

    Raises:
        MissingSignature: A secret is configured but the request was not signed.
        UnexpectedSignature: The request was signed but no secret is configured.
        MalformedSignature: The signature is not valid hex.
        SignatureMismatch: The signature does not match the payload.
    """
    if secret is None and signature_hex is None:
        return
    if signature_hex is None:
        raise MissingSignature
    if secret is None:
        raise UnexpectedSignature

    try:
        provided = binascii.unhexlify(signature_hex)
    except (binascii.Error, ValueError):
        raise MalformedSignature from None

    expected = hmac.new(secret, msg=payload, digestmod=hashlib.sha256).digest()
    if not hmac.compare_digest(expected, provided):
        raise SignatureMismatch
