import logging
import re
import urllib.parse

import dns.exception
import dns.resolver
import requests

from openpgp_hkp.errors import (
    InsecureHostError,
    NotFoundError,
    ResolutionError,
    StatusError,
    TransientResolutionError,
)
from openpgp_hkp.index import read_index
from openpgp_hkp.keyring import GnuPGKeyring
from openpgp_hkp.lookup import ADD_PATH, LOOKUP_PATH

logger = logging.getLogger(__name__)

SRV_SERVICE = "_hkp._tcp"
HOSTNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9.-]*[A-Za-z0-9])?(?::[0-9]+)?$")


def resolve_srv(hostname):
    """Return the ``(target, port)`` pairs of the hkp SRV records for a host.

    A name without SRV records yields an empty list. Timeouts and
    unreachable name servers raise TransientResolutionError; any other
    resolver failure raises ResolutionError.
    """
    name = f"{SRV_SERVICE}.{hostname}"
    try:
        answer = dns.resolver.resolve(name, "SRV")
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return []
    except (dns.exception.Timeout, dns.resolver.NoNameservers) as e:
        raise TransientResolutionError(f"hkp: SRV lookup for {name} failed: {e}") from e
    except dns.exception.DNSException as e:
        raise ResolutionError(f"hkp: SRV lookup for {name} failed: {e}") from e

    records = sorted(answer, key=lambda r: (r.priority, -r.weight))
    return [(r.target.to_text(omit_final_dot=True), r.port) for r in records]


class Client:
    """HKP client.

    ``host`` is either an absolute URL (``https://keys.example.org``) or a
    bare hostname, in which case the keyserver is discovered through the
    ``_hkp._tcp`` SRV record. Plain HTTP is refused unless ``insecure`` is
    set. ``session`` and ``resolver`` default to a fresh requests session
    and to DNS SRV lookups.
    """

    def __init__(self, host, insecure=False, keyring=None, session=None, resolver=None):
        self.host = host
        self.insecure = insecure
        self.keyring = keyring or GnuPGKeyring()
        self.session = session or requests.Session()
        self.resolver = resolver or resolve_srv

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def host_url(self):
        u = urllib.parse.urlsplit(self.host)
        if u.scheme and u.netloc:
            if not self.insecure and u.scheme != "https":
                raise InsecureHostError("hkp: refusing to connect to non-HTTPS keyserver")
            return u

        if not HOSTNAME_RE.fullmatch(self.host):
            raise ResolutionError(f"hkp: invalid keyserver host {self.host!r}")

        netloc = self.host
        if ":" not in netloc:
            # Errors propagate; the caller decides whether to retry.
            addrs = self.resolver(netloc)
            if addrs:
                target, port = addrs[0]
                netloc = f"{target}:{port}"
                logger.debug("hkp: %s resolved to %s", self.host, netloc)

        scheme = "http" if self.insecure else "https"
        return urllib.parse.SplitResult(scheme, netloc, "", "", "")

    def url(self, path):
        u = self.host_url()
        return urllib.parse.urlunsplit(
            (u.scheme, u.netloc, u.path.rstrip("/") + path, "", "")
        )

    def _lookup(self, op, req):
        url = self.url(LOOKUP_PATH)
        logger.debug("hkp: GET %s op=%s search=%r", url, op, req.search)
        return self.session.get(url, params=req.query(op))

    def index(self, req):
        resp = self._lookup("index", req)
        if resp.status_code != 200:
            raise StatusError("get index", resp.status_code, resp.reason)
        return read_index(resp.text)

    def get(self, req):
        resp = self._lookup("get", req)
        if resp.status_code == 404:
            raise NotFoundError()
        if resp.status_code != 200:
            raise StatusError("get key", resp.status_code, resp.reason)
        return self.keyring.read_armored(resp.text)

    def add(self, entities):
        url = self.url(ADD_PATH)
        keytext = self.keyring.serialize_armored(entities)
        logger.debug("hkp: POST %s (%d keys)", url, len(entities))
        resp = self.session.post(url, data={"keytext": keytext})
        if resp.status_code // 100 != 2:
            raise StatusError("add key", resp.status_code, resp.reason)
