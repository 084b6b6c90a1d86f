"""
Identity Codec

Converts between the bech32 display form (npub1...) and the canonical
64-char lowercase hex key. Pure functions, no I/O.
"""

import string

from bech32 import bech32_decode, bech32_encode, convertbits

from .errors import IdentityDecodeError


NPUB_PREFIX = "npub"
KEY_BYTES = 32
HEX_LENGTH = KEY_BYTES * 2


def is_hex_identity(value: str) -> bool:
    """True for a 64-char lowercase hex key."""
    return (
        isinstance(value, str)
        and len(value) == HEX_LENGTH
        and all(c in string.hexdigits and not c.isupper() for c in value)
    )


def npub_to_hex(npub: str) -> str:
    """Decode an npub1... string into its hex key."""
    if not isinstance(npub, str) or not npub.startswith(NPUB_PREFIX + "1"):
        raise IdentityDecodeError(f"not an npub: {npub!r}")

    hrp, data = bech32_decode(npub)
    if hrp != NPUB_PREFIX or data is None:
        raise IdentityDecodeError(f"bad bech32 checksum: {npub!r}")

    raw = convertbits(data, 5, 8, False)
    if raw is None or len(raw) != KEY_BYTES:
        raise IdentityDecodeError(f"bad key length: {npub!r}")

    return bytes(raw).hex()


def hex_to_npub(hex_key: str) -> str:
    """Encode a hex key as npub1..."""
    if not isinstance(hex_key, str) or len(hex_key) != HEX_LENGTH:
        raise IdentityDecodeError(f"bad hex key length: {hex_key!r}")
    try:
        raw = bytes.fromhex(hex_key)
    except ValueError as e:
        raise IdentityDecodeError(f"bad hex key: {hex_key!r}") from e

    data = convertbits(raw, 8, 5, True)
    return bech32_encode(NPUB_PREFIX, data)


def normalize_identity(value: str) -> str:
    """Accept either encoding and return the hex key."""
    if isinstance(value, str) and value.startswith(NPUB_PREFIX + "1"):
        return npub_to_hex(value)
    if isinstance(value, str) and is_hex_identity(value.lower()):
        return value.lower()
    raise IdentityDecodeError(f"unrecognized identity: {value!r}")


def shorten_npub(npub: str) -> str:
    """Shorten an identity for display, e.g. npub1abc...wxyz."""
    if not npub:
        return ""
    if len(npub) <= 16:
        return npub
    if npub.startswith(NPUB_PREFIX + "1"):
        return f"{npub[:8]}...{npub[-4:]}"
    return f"{npub[:6]}...{npub[-4:]}"
