"""
RSA2 (SHA256withRSA, PKCS#1 v1.5) signer shared by the precreate request path
and the notification verification path.

The gateway verifies the exact byte string produced by `build_sign_string`,
so both directions must go through this module.
"""
from __future__ import annotations

import base64
import binascii
import textwrap
from typing import Mapping, Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.hazmat.primitives.serialization import load_pem_private_key, load_pem_public_key

from infrastructure.external.payments.exceptions import KeyImportError, SigningError


EXCLUDED_KEYS = frozenset({"sign", "sign_type"})


def build_sign_string(params: Mapping[str, Optional[object]]) -> str:
    """Sorted `k=v` pairs joined by `&`, skipping sign fields and empty values.

    Values are used raw (no URL encoding).
    """
    items = []
    for key, value in params.items():
        if key in EXCLUDED_KEYS or value is None:
            continue
        text = str(value)
        if text == "":
            continue
        items.append((key, text))
    items.sort(key=lambda kv: kv[0])
    return "&".join(f"{k}={v}" for k, v in items)


def _normalize_pem(pem: str, label: str) -> bytes:
    raw = (pem or "").strip()
    if not raw:
        raise KeyImportError(label.lower(), "empty key")
    if "-----BEGIN" in raw:
        return raw.encode("utf-8")
    # Admin consoles often store the bare base64 body without armour
    body = "".join(raw.split())
    wrapped = "\n".join(textwrap.wrap(body, 64))
    return f"-----BEGIN {label}-----\n{wrapped}\n-----END {label}-----\n".encode("utf-8")


def load_private_key(pem: str) -> RSAPrivateKey:
    data = _normalize_pem(pem, "PRIVATE KEY")
    try:
        key = load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyImportError("private key", type(exc).__name__) from None
    if not isinstance(key, RSAPrivateKey):
        raise KeyImportError("private key", "not an RSA key")
    return key


def load_public_key(pem: str) -> RSAPublicKey:
    data = _normalize_pem(pem, "PUBLIC KEY")
    try:
        key = load_pem_public_key(data)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyImportError("public key", type(exc).__name__) from None
    if not isinstance(key, RSAPublicKey):
        raise KeyImportError("public key", "not an RSA key")
    return key


def sign(message: str, private_key_pem: str) -> str:
    """Return the base64 RSA2 signature of `message`."""
    key = load_private_key(private_key_pem)
    try:
        signature = key.sign(message.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    except (ValueError, TypeError) as exc:
        raise SigningError(type(exc).__name__) from None
    return base64.b64encode(signature).decode("ascii")


def verify(message: str, signature_b64: str, public_key_pem: str) -> bool:
    """Check an RSA2 signature. Only a broken public key raises."""
    key = load_public_key(public_key_pem)
    try:
        signature = base64.b64decode(signature_b64 or "", validate=True)
    except (binascii.Error, ValueError):
        return False
    if not signature:
        return False
    try:
        key.verify(signature, message.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


def sign_params(params: Mapping[str, Optional[object]], private_key_pem: str) -> str:
    return sign(build_sign_string(params), private_key_pem)


def verify_params(params: Mapping[str, Optional[object]], public_key_pem: str) -> bool:
    return verify(build_sign_string(params), str(params.get("sign") or ""), public_key_pem)
