import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest
from werkzeug.serving import make_server

from openpgp_hkp.errors import KeyringError
from openpgp_hkp.index import IndexKey
from openpgp_hkp.keyring import Entity, Identity

DATA_DIR = Path(__file__).parent / "data"

STALLMAN_FINGERPRINT = bytes.fromhex("67819B343B2AB70DED9320872C6464AF2A8E4C02")
STALLMAN_CREATED = datetime(2013, 7, 20, 16, 32, 38, tzinfo=timezone.utc)
STALLMAN_NAME = "Richard Stallman <rms@gnu.org>"

requires_gpg = pytest.mark.skipif(shutil.which("gpg") is None, reason="gpg binary not available")


class FakeKeyring:
    """Keyring that only knows a fixed set of entities by their armored text."""

    def __init__(self, *entities):
        self.entities = entities

    def read_armored(self, text):
        found = [e for e in self.entities if e.armored.strip() in text]
        if not found:
            raise KeyringError("hkp: no public keys found in armored text")
        return found

    def serialize_armored(self, entities):
        return "\n".join(e.armored for e in entities)


class MockBackend:
    def __init__(self, entity):
        self.entity = entity
        self.added = []

    def get(self, req):
        if req.search != "stallman":
            return []
        return [self.entity]

    def index(self, req):
        if req.search != "stallman":
            return []
        return [IndexKey.from_entity(self.entity)]

    def add(self, entities):
        self.added.extend(entities)


@pytest.fixture
def stallman_armored():
    return (DATA_DIR / "stallman.asc").read_text()


@pytest.fixture
def stallman(stallman_armored):
    return Entity(
        fingerprint=STALLMAN_FINGERPRINT,
        algorithm=1,
        bit_length=4096,
        creation_time=STALLMAN_CREATED,
        identities=[Identity(name=STALLMAN_NAME, creation_time=STALLMAN_CREATED)],
        armored=stallman_armored,
    )


@pytest.fixture
def keyring(stallman):
    return FakeKeyring(stallman)


@pytest.fixture
def backend(stallman):
    return MockBackend(stallman)


@pytest.fixture
def serve():
    """Run WSGI apps on a local port; returns a function giving the base URL."""
    servers = []

    def start(app):
        server = make_server("127.0.0.1", 0, app)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_port}"

    yield start

    for server in servers:
        server.shutdown()
        server.server_close()
