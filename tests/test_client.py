import dns.exception
import dns.name
import dns.resolver
import pytest
from flask import Flask, request

from openpgp_hkp import client as hkp_client
from openpgp_hkp.client import Client, resolve_srv
from openpgp_hkp.errors import (
    InsecureHostError,
    IndexParseError,
    NotFoundError,
    ResolutionError,
    StatusError,
    TransientResolutionError,
)
from openpgp_hkp.index import IndexIdentity, IndexKey
from openpgp_hkp.lookup import LookupOptions, LookupRequest
from openpgp_hkp.server import create_app

from conftest import STALLMAN_CREATED, STALLMAN_FINGERPRINT, STALLMAN_NAME


def no_srv(hostname):
    return []


@pytest.fixture
def hkp(serve, backend, keyring):
    url = serve(create_app(lookuper=backend, adder=backend, keyring=keyring))
    return Client(url, insecure=True, keyring=keyring)


def test_index(hkp):
    index = hkp.index(LookupRequest(search="stallman"))
    assert index == [
        IndexKey(
            fingerprint=STALLMAN_FINGERPRINT,
            algorithm=1,
            bit_length=4096,
            creation_time=STALLMAN_CREATED,
            identities=[IndexIdentity(name=STALLMAN_NAME, creation_time=STALLMAN_CREATED)],
        )
    ]


def test_get(hkp, stallman):
    keys = hkp.get(LookupRequest(search="stallman"))
    assert len(keys) == 1
    assert keys[0].fingerprint == stallman.fingerprint


def test_get_not_found(hkp):
    with pytest.raises(NotFoundError):
        hkp.get(LookupRequest(search="nobody"))


def test_add(hkp, backend, stallman):
    hkp.add([stallman])
    assert backend.added == [stallman]


def test_status_errors(serve, keyring, stallman):
    hkp = Client(serve(create_app(keyring=keyring)), insecure=True, keyring=keyring)
    req = LookupRequest(search="stallman")

    with pytest.raises(StatusError) as exc:
        hkp.index(req)
    assert exc.value.status_code == 501
    with pytest.raises(StatusError):
        hkp.get(req)
    with pytest.raises(StatusError):
        hkp.add([stallman])


def test_query_parameters(serve, keyring):
    seen = []
    app = Flask(__name__)

    @app.get("/pks/lookup")
    def lookup():
        seen.append(request.args.to_dict())
        return "info:1:0\n"

    hkp = Client(serve(app), insecure=True, keyring=keyring)
    hkp.index(LookupRequest(search="rms", options=LookupOptions(True), exact=True))
    hkp.index(LookupRequest(search="rms"))

    assert seen[0] == {
        "op": "index",
        "search": "rms",
        "options": "mr,nm",
        "exact": "on",
        "fingerprint": "on",
    }
    assert "exact" not in seen[1]


def test_index_parse_error(serve, keyring):
    app = Flask(__name__)

    @app.get("/pks/lookup")
    def lookup():
        return f"info:1:2\npub:{STALLMAN_FINGERPRINT.hex()}:1:4096:::\n"

    hkp = Client(serve(app), insecure=True, keyring=keyring)
    with pytest.raises(IndexParseError) as exc:
        hkp.index(LookupRequest(search="rms"))
    assert len(exc.value.keys) == 1


def test_url_from_absolute_host():
    hkp = Client("https://keys.example.org/", resolver=no_srv)
    assert hkp.url("/pks/lookup") == "https://keys.example.org/pks/lookup"

    hkp = Client("https://example.org/keyserver", resolver=no_srv)
    assert hkp.url("/pks/add") == "https://example.org/keyserver/pks/add"


def test_refuses_plain_http():
    with pytest.raises(InsecureHostError):
        Client("http://keys.example.org", resolver=no_srv).url("/pks/lookup")
    with pytest.raises(InsecureHostError):
        Client("hkp://keys.example.org", resolver=no_srv).url("/pks/lookup")

    hkp = Client("http://keys.example.org", insecure=True, resolver=no_srv)
    assert hkp.url("/pks/lookup") == "http://keys.example.org/pks/lookup"


def test_bare_host_uses_first_srv_record():
    queried = []

    def resolver(hostname):
        queried.append(hostname)
        return [("hkps.example.net", 443), ("backup.example.net", 443)]

    hkp = Client("example.org", resolver=resolver)
    assert hkp.url("/pks/lookup") == "https://hkps.example.net:443/pks/lookup"
    assert queried == ["example.org"]


def test_bare_host_without_srv_records():
    hkp = Client("keys.example.org", resolver=no_srv)
    assert hkp.url("/pks/lookup") == "https://keys.example.org/pks/lookup"

    hkp = Client("keys.example.org", insecure=True, resolver=no_srv)
    assert hkp.url("/pks/lookup") == "http://keys.example.org/pks/lookup"


def test_bare_host_with_port_skips_srv():
    def resolver(hostname):
        raise AssertionError("unexpected SRV lookup")

    hkp = Client("keys.example.org:11371", insecure=True, resolver=resolver)
    assert hkp.url("/pks/lookup") == "http://keys.example.org:11371/pks/lookup"


@pytest.mark.parametrize("error", [ResolutionError("boom"), TransientResolutionError("later")])
def test_resolution_errors_propagate(error):
    def resolver(hostname):
        raise error

    hkp = Client("example.org", resolver=resolver)
    with pytest.raises(ResolutionError) as exc:
        hkp.get(LookupRequest(search="rms"))
    assert exc.value is error
    assert exc.value.retryable == isinstance(error, TransientResolutionError)


def test_invalid_host():
    with pytest.raises(ResolutionError):
        Client("not a host", resolver=no_srv).url("/pks/lookup")


class FakeSRV:
    def __init__(self, target, port, priority=0, weight=0):
        self.target = dns.name.from_text(target)
        self.port = port
        self.priority = priority
        self.weight = weight


def test_resolve_srv(monkeypatch):
    queried = []

    def resolve(name, rdtype):
        queried.append((name, rdtype))
        return [
            FakeSRV("backup.example.net.", 11371, priority=10),
            FakeSRV("light.example.net.", 11371, weight=1),
            FakeSRV("heavy.example.net.", 443, weight=5),
        ]

    monkeypatch.setattr(hkp_client.dns.resolver, "resolve", resolve)
    assert resolve_srv("example.org") == [
        ("heavy.example.net", 443),
        ("light.example.net", 11371),
        ("backup.example.net", 11371),
    ]
    assert queried == [("_hkp._tcp.example.org", "SRV")]


@pytest.mark.parametrize(
    "error, expected",
    [
        (dns.resolver.NXDOMAIN(), None),
        (dns.resolver.NoAnswer(), None),
        (dns.exception.Timeout(), TransientResolutionError),
        (dns.resolver.NoNameservers(), TransientResolutionError),
        (dns.exception.SyntaxError(), ResolutionError),
    ],
)
def test_resolve_srv_errors(monkeypatch, error, expected):
    def resolve(name, rdtype):
        raise error

    monkeypatch.setattr(hkp_client.dns.resolver, "resolve", resolve)
    if expected is None:
        assert resolve_srv("example.org") == []
    else:
        with pytest.raises(expected) as exc:
            resolve_srv("example.org")
        assert type(exc.value) is expected


class RecordingSession:
    closed = False

    def close(self):
        self.closed = True


def test_close_releases_session():
    session = RecordingSession()
    with Client("https://keys.example.org", session=session, resolver=no_srv) as hkp:
        assert hkp.session is session
    assert session.closed

    session = RecordingSession()
    Client("https://keys.example.org", session=session, resolver=no_srv).close()
    assert session.closed
