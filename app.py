import logging
import os

from openpgp_hkp.backend import GnuPGBackend
from openpgp_hkp.server import create_app

GNUPGHOME = os.environ.get("GNUPGHOME")
HOST = os.environ.get("HKP_HOST", "0.0.0.0")
PORT = int(os.environ.get("HKP_PORT", "11371"))
ALLOW_EMPTY_ADD = os.environ.get("HKP_ALLOW_EMPTY_ADD", "on").casefold() == "on"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

backend = GnuPGBackend(gnupghome=GNUPGHOME)
app = create_app(lookuper=backend, adder=backend, allow_empty_add=ALLOW_EMPTY_ADD)

if __name__ == "__main__":
    app.run(host=HOST, port=PORT)
