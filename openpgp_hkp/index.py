"""Machine-readable key index ("options=mr" output of op=index).

    info:<version>:<count>
    pub:<fingerprint>:<algo>:<bitlen>:<created>:<expires>:<flags>
    uid:<escaped name>:<created>:<expires>:<flags>
"""

import enum
import re
import urllib.parse
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from openpgp_hkp.errors import IndexParseError

INDEX_VERSION = 1
FINGERPRINT_LENGTH = 20

INT_RE = re.compile("^[+-]?[0-9]+$")
HEX_RE = re.compile("^[a-fA-F0-9]*$")
BAD_ESCAPE_RE = re.compile("%(?![0-9A-Fa-f]{2})")


class IndexFlags(enum.IntFlag):
    REVOKED = 1
    DISABLED = 2
    EXPIRED = 4


FLAG_CODES = (
    (IndexFlags.REVOKED, "r"),
    (IndexFlags.DISABLED, "d"),
    (IndexFlags.EXPIRED, "e"),
)


def format_flags(flags):
    return "".join(code for flag, code in FLAG_CODES if flags & flag)


def parse_flags(s):
    # Unknown flag characters are ignored.
    flags = IndexFlags(0)
    for flag, code in FLAG_CODES:
        if code in s:
            flags |= flag
    return flags


@dataclass
class IndexIdentity:
    name: str
    creation_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None
    flags: IndexFlags = IndexFlags(0)


@dataclass
class IndexKey:
    fingerprint: bytes
    algorithm: int
    bit_length: int
    creation_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None
    flags: IndexFlags = IndexFlags(0)
    identities: List[IndexIdentity] = field(default_factory=list)

    @classmethod
    def from_entity(cls, entity):
        """Build an index record from a keyring entity."""
        identities = [
            IndexIdentity(
                name=ident.name,
                creation_time=ident.creation_time,
                expiration_time=ident.expiration_time,
                flags=ident.flags,
            )
            for ident in entity.identities
        ]
        return cls(
            fingerprint=entity.fingerprint,
            algorithm=entity.algorithm,
            bit_length=entity.bit_length,
            creation_time=entity.creation_time,
            expiration_time=entity.expiration_time,
            flags=entity.flags,
            identities=identities,
        )


def format_time(t):
    if t is None:
        return ""
    return str(int(t.timestamp()))


def write_index(keys):
    """Encode ``keys`` as a machine-readable index."""
    lines = [f"info:{INDEX_VERSION}:{len(keys)}"]
    for key in keys:
        lines.append(
            f"pub:{key.fingerprint.hex().upper()}:{int(key.algorithm)}:{key.bit_length}"
            f":{format_time(key.creation_time)}:{format_time(key.expiration_time)}"
            f":{format_flags(key.flags)}"
        )
        for ident in key.identities:
            # Escapes ':' so the name cannot change the field count.
            name = urllib.parse.quote(ident.name, safe="")
            lines.append(
                f"uid:{name}:{format_time(ident.creation_time)}"
                f":{format_time(ident.expiration_time)}:{format_flags(ident.flags)}"
            )
    return "\n".join(lines) + "\n"


def _parse_int(s, what, keys):
    if not INT_RE.fullmatch(s):
        raise IndexParseError(f"hkp: invalid {what} {s!r}", keys)
    return int(s)


def parse_time(s, keys=()):
    if s == "":
        return None
    seconds = _parse_int(s, "time", keys)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (ValueError, OverflowError, OSError) as e:
        raise IndexParseError(f"hkp: time out of range {s!r}", keys) from e


def _parse_header(line):
    fields = line.split(":", 2)
    if len(fields) != 3 or fields[0] != "info":
        raise IndexParseError("hkp: failed to parse info")
    version = _parse_int(fields[1], "index version", [])
    count = _parse_int(fields[2], "key count", [])
    if version != INDEX_VERSION:
        raise IndexParseError(f"hkp: unsupported index version {version}")
    return count


def _parse_pub(fields, keys):
    if len(fields) != 7:
        raise IndexParseError("hkp: failed to parse pub", keys)

    digits = fields[1]
    if len(digits) % 2 or not HEX_RE.fullmatch(digits):
        raise IndexParseError(f"hkp: invalid fingerprint {digits!r}", keys)
    fingerprint = bytes.fromhex(digits)
    if len(fingerprint) != FINGERPRINT_LENGTH:
        raise IndexParseError("hkp: invalid fingerprint size", keys)

    return IndexKey(
        fingerprint=fingerprint,
        algorithm=_parse_int(fields[2], "algorithm", keys),
        bit_length=_parse_int(fields[3], "bit length", keys),
        creation_time=parse_time(fields[4], keys),
        expiration_time=parse_time(fields[5], keys),
        flags=parse_flags(fields[6]),
    )


def _parse_uid(fields, keys):
    if not keys:
        raise IndexParseError("hkp: got uid before pub", keys)
    if len(fields) != 5:
        raise IndexParseError("hkp: failed to parse uid", keys)

    if BAD_ESCAPE_RE.search(fields[1]):
        raise IndexParseError(f"hkp: invalid escape in uid name {fields[1]!r}", keys)
    try:
        name = urllib.parse.unquote(fields[1], errors="strict")
    except UnicodeDecodeError as e:
        raise IndexParseError(f"hkp: invalid uid name: {e}", keys) from e

    return IndexIdentity(
        name=name,
        creation_time=parse_time(fields[2], keys),
        expiration_time=parse_time(fields[3], keys),
        flags=parse_flags(fields[4]),
    )


def read_index(data, strict=False):
    """Decode a machine-readable index.

    ``data`` is either the whole response text or an iterable of lines.
    Blank lines are skipped. Lines with a tag other than ``pub`` or ``uid``
    are ignored unless ``strict`` is set, in which case they are an error.

    Raises IndexParseError on malformed input; its ``keys`` attribute holds
    whatever was decoded before the failure, including on a key count
    mismatch.
    """
    if isinstance(data, str):
        data = data.splitlines()
    lines = (line.rstrip("\r\n") for line in data)
    lines = (line for line in lines if line.strip())

    header = next(lines, None)
    if header is None:
        raise IndexParseError("hkp: unexpected EOF")
    count = _parse_header(header)

    keys = []
    for line in lines:
        fields = line.split(":")
        tag = fields[0]
        if tag == "pub":
            keys.append(_parse_pub(fields, keys))
        elif tag == "uid":
            ident = _parse_uid(fields, keys)
            keys[-1].identities.append(ident)
        elif strict:
            raise IndexParseError(f"hkp: unknown index line {tag!r}", keys)

    if len(keys) != count:
        raise IndexParseError(
            f"hkp: key count mismatch: header says {count}, got {len(keys)}", keys
        )
    return keys
