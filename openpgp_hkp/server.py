import logging

from flask import Blueprint, Flask, make_response, request
from werkzeug.exceptions import HTTPException, NotFound

from openpgp_hkp.errors import HKPError, NotFoundError, TransportError
from openpgp_hkp.index import write_index
from openpgp_hkp.keyring import GnuPGKeyring
from openpgp_hkp.lookup import ADD_PATH, LOOKUP_PATH, LookupRequest

logger = logging.getLogger(__name__)

INDEX_OPERATIONS = ("index", "vindex")


def not_implemented(e=None):
    return "Not Implemented", 501


def http_error(e):
    # Client-side failures have no meaning as a server response.
    if isinstance(e, HKPError) and not isinstance(e, TransportError):
        status = e.status
    else:
        status = 500
    if status >= 500:
        logger.exception("hkp: request failed")
    return str(e), status


def create_blueprint(lookuper=None, adder=None, keyring=None, allow_empty_add=True):
    """Flask blueprint serving /pks/lookup and /pks/add.

    ``lookuper`` and ``adder`` are the key store; a missing one answers 501
    on its path. An add request without ``keytext`` is a silent no-op when
    ``allow_empty_add`` is set and a 400 otherwise.
    """
    keyring = keyring or GnuPGKeyring()
    bp = Blueprint("hkp", __name__)

    @bp.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return e
        return http_error(e)

    @bp.get(LOOKUP_PATH)
    def lookup():
        if lookuper is None:
            return not_implemented()

        op = request.args.get("op", "")
        req = LookupRequest.from_query(request.args)

        if op == "get":
            entities = lookuper.get(req)
            if not entities:
                raise NotFoundError()
            response = make_response(keyring.serialize_armored(entities), 200)
            response.headers["Content-Type"] = "application/pgp-keys"
            return response

        elif op in INDEX_OPERATIONS:
            keys = lookuper.index(req)
            response = make_response(write_index(keys or []), 200)
            response.headers["Content-Type"] = "text/plain"
            return response

        return not_implemented()

    @bp.post(ADD_PATH)
    def add():
        if adder is None:
            return not_implemented()

        keytext = request.form.get("keytext", "")
        if not keytext:
            if allow_empty_add:
                return "", 200
            return "Missing keytext", 400

        entities = keyring.read_armored(keytext)
        logger.debug("hkp: adding %d keys", len(entities))
        adder.add(entities)
        return "", 200

    return bp


def create_app(lookuper=None, adder=None, keyring=None, allow_empty_add=True):
    app = Flask(__name__)
    app.register_blueprint(
        create_blueprint(lookuper, adder, keyring, allow_empty_add=allow_empty_add)
    )
    app.register_error_handler(NotFound, not_implemented)
    return app
