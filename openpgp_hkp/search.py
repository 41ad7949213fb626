import re

KEY_ID_PREFIX = "0x"
ACCEPTED_KEY_ID_LENGTH = (4, 8, 20)

HEX_RE = re.compile("^[a-fA-F0-9]+$")


class KeyIDSearch:
    """A key ID or fingerprint given as ``search=0x...``.

    Holds 4 bytes (short key ID), 8 bytes (64-bit key ID) or 20 bytes (v4
    fingerprint). Views that the stored length cannot express return None.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw):
        raw = bytes(raw)
        if len(raw) not in ACCEPTED_KEY_ID_LENGTH:
            raise ValueError(f"hkp: invalid key ID search length {len(raw)}")
        self._raw = raw

    def __bytes__(self):
        return self._raw

    def __len__(self):
        return len(self._raw)

    def __eq__(self, other):
        if not isinstance(other, KeyIDSearch):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self):
        return hash(self._raw)

    def __repr__(self):
        return f"KeyIDSearch(0x{self._raw.hex().upper()})"

    def fingerprint(self):
        if len(self._raw) != 20:
            return None
        return self._raw

    def key_id(self):
        if len(self._raw) not in (8, 20):
            return None
        return int.from_bytes(self._raw[-8:], "big")

    def key_id_short(self):
        return int.from_bytes(self._raw[-4:], "big")


def parse_key_id_search(search):
    """Return a KeyIDSearch for ``search``, or None if it is not one.

    None is not an error: callers fall back to a text search.
    """
    if not search.startswith(KEY_ID_PREFIX):
        return None

    digits = search[len(KEY_ID_PREFIX):]
    if not HEX_RE.fullmatch(digits) or len(digits) % 2:
        return None

    raw = bytes.fromhex(digits)
    if len(raw) not in ACCEPTED_KEY_ID_LENGTH:
        return None
    return KeyIDSearch(raw)
