import logging
import os

import gnupg

from openpgp_hkp.errors import NotFoundError
from openpgp_hkp.index import IndexKey
from openpgp_hkp.keyring import entity_from_listing
from openpgp_hkp.search import parse_key_id_search

logger = logging.getLogger(__name__)


def key_id_matches(search, fingerprint):
    if search.fingerprint() is not None:
        return fingerprint == search.fingerprint()
    if search.key_id() is not None:
        return int.from_bytes(fingerprint[-8:], "big") == search.key_id()
    return int.from_bytes(fingerprint[-4:], "big") == search.key_id_short()


def uid_matches(search, uids, exact=False):
    search = search.casefold()
    if exact:
        return any(search == uid.casefold() for uid in uids)
    return any(search in uid.casefold() for uid in uids)


class GnuPGBackend:
    """Lookuper and Adder over the public keyring of a GnuPG home."""

    def __init__(self, gnupghome=None, gpgbinary="gpg"):
        # python-gnupg 0.5 refuses a home directory that does not exist yet.
        if gnupghome:
            os.makedirs(gnupghome, mode=0o700, exist_ok=True)
        self.gpg = gnupg.GPG(gpgbinary=gpgbinary, gnupghome=gnupghome)
        self.gpg.encoding = "utf-8"

    def _search(self, req):
        search = parse_key_id_search(req.search)
        results = []
        listing = self.gpg.list_keys()
        for key in listing:
            if search is not None:
                matched = key_id_matches(search, bytes.fromhex(key["fingerprint"]))
            else:
                matched = uid_matches(req.search, key.get("uids", []), req.exact)
            if matched:
                results.append(key)

        logger.debug("hkp: %r matched %d keys", req.search, len(results))
        if not results:
            raise NotFoundError(f"hkp: no key matching {req.search!r}")
        return [entity_from_listing(self.gpg, key, listing) for key in results]

    def get(self, req):
        return self._search(req)

    def index(self, req):
        return [IndexKey.from_entity(entity) for entity in self._search(req)]

    def add(self, entities):
        for entity in entities:
            result = self.gpg.import_keys(entity.armored)
            logger.info("hkp: imported %s", ", ".join(result.fingerprints) or "nothing")
