"""OpenPGP HTTP Keyserver Protocol (HKP) client and server.

See https://tools.ietf.org/html/draft-shaw-openpgp-hkp-00
"""

from openpgp_hkp.client import Client
from openpgp_hkp.errors import (
    ForbiddenError,
    HKPError,
    IndexParseError,
    NotFoundError,
    ResolutionError,
    StatusError,
    TransientResolutionError,
)
from openpgp_hkp.index import IndexFlags, IndexIdentity, IndexKey, read_index, write_index
from openpgp_hkp.keyring import Entity, GnuPGKeyring, Identity
from openpgp_hkp.lookup import LookupOptions, LookupRequest
from openpgp_hkp.search import KeyIDSearch, parse_key_id_search
from openpgp_hkp.server import create_app, create_blueprint

__all__ = [
    "Client",
    "Entity",
    "ForbiddenError",
    "GnuPGKeyring",
    "HKPError",
    "Identity",
    "IndexFlags",
    "IndexIdentity",
    "IndexKey",
    "IndexParseError",
    "KeyIDSearch",
    "LookupOptions",
    "LookupRequest",
    "NotFoundError",
    "ResolutionError",
    "StatusError",
    "TransientResolutionError",
    "create_app",
    "create_blueprint",
    "parse_key_id_search",
    "read_index",
    "write_index",
]
