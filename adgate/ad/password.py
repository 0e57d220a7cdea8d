from __future__ import annotations


def encode_unicode_pwd(password: str) -> bytes:
    """Encode a cleartext password for the AD ``unicodePwd`` attribute.

    AD only accepts the password wrapped in double quotes and encoded as
    UTF-16LE, without a BOM. Anything else is rejected by the DC.
    """
    return f'"{password}"'.encode("utf-16-le")
