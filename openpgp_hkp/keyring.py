"""Armored key-ring reading and writing.

The protocol code only needs two operations from an OpenPGP implementation:
turning armored text into entities and back. GnuPGKeyring provides them with
python-gnupg, importing into a scratch GnuPG home for every call so that no
key ever touches a real keyring.
"""

import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol

import gnupg

from openpgp_hkp.errors import KeyringError
from openpgp_hkp.index import IndexFlags

logger = logging.getLogger(__name__)

# Validity codes from gpg's colon listing that carry over to index flags.
VALIDITY_FLAGS = {
    "r": IndexFlags.REVOKED,
    "d": IndexFlags.DISABLED,
    "e": IndexFlags.EXPIRED,
}

UID_VALIDITY_FLAGS = {"r": IndexFlags.REVOKED}


@dataclass
class Identity:
    name: str
    creation_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None
    flags: IndexFlags = IndexFlags(0)


@dataclass
class Entity:
    fingerprint: bytes
    algorithm: int
    bit_length: int
    creation_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None
    identities: List[Identity] = field(default_factory=list)
    flags: IndexFlags = IndexFlags(0)
    armored: str = ""


class Keyring(Protocol):
    def read_armored(self, text: str) -> List[Entity]: ...
    def serialize_armored(self, entities: List[Entity]) -> str: ...


def _timestamp(value):
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def entity_from_listing(gpg, key, listing=None):
    """Build an Entity from one ``gpg.list_keys()`` record.

    Identity times and revocation come from the uid records of ``listing``
    (the ListKeys result the key came from). A uid missing there takes the
    key's own creation and expiration time.
    """
    created = _timestamp(key.get("date"))
    expires = _timestamp(key.get("expires"))
    uid_map = getattr(listing, "uid_map", None) or {}

    identities = []
    for uid in key.get("uids", []):
        record = uid_map.get(uid)
        if record is None:
            identities.append(Identity(name=uid, creation_time=created, expiration_time=expires))
            continue
        identities.append(
            Identity(
                name=uid,
                creation_time=_timestamp(record.get("date")),
                expiration_time=_timestamp(record.get("expires")),
                flags=UID_VALIDITY_FLAGS.get(record.get("trust"), IndexFlags(0)),
            )
        )

    return Entity(
        fingerprint=bytes.fromhex(key["fingerprint"]),
        algorithm=int(key.get("algo") or 0),
        bit_length=int(key.get("length") or 0),
        creation_time=created,
        expiration_time=expires,
        identities=identities,
        flags=VALIDITY_FLAGS.get(key.get("trust"), IndexFlags(0)),
        armored=gpg.export_keys(key["fingerprint"]),
    )


class GnuPGKeyring:
    def __init__(self, gpgbinary="gpg"):
        self.gpgbinary = gpgbinary

    def _gpg(self, home):
        gpg = gnupg.GPG(gpgbinary=self.gpgbinary, gnupghome=home)
        gpg.encoding = "utf-8"
        return gpg

    def read_armored(self, text):
        with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as home:
            gpg = self._gpg(home)
            result = gpg.import_keys(text)
            logger.debug("scratch import: %s keys", result.count)
            if not result.fingerprints:
                raise KeyringError("hkp: no public keys found in armored text")

            wanted = set(result.fingerprints)
            listing = gpg.list_keys()
            return [
                entity_from_listing(gpg, key, listing)
                for key in listing
                if key["fingerprint"] in wanted
            ]

    def serialize_armored(self, entities):
        """Export ``entities`` as a single armored public key block."""
        if not entities:
            return ""
        if any(not entity.armored for entity in entities):
            raise KeyringError("hkp: entity has no armored key material")

        with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as home:
            gpg = self._gpg(home)
            for entity in entities:
                gpg.import_keys(entity.armored)
            fingerprints = [entity.fingerprint.hex().upper() for entity in entities]
            armored = gpg.export_keys(fingerprints)
            if not armored:
                raise KeyringError("hkp: failed to export keys")
            return armored
