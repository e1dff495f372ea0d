from flask import jsonify

from ..validation import LedgerError


def error_response(exc: LedgerError):
    """Typed ledger errors -> JSON body with a stable kind and the mapped HTTP status."""
    return jsonify({"error": str(exc), "kind": exc.kind}), exc.http_status


def internal_error_response():
    return jsonify({"error": "Internal server error", "kind": "internal"}), 500
