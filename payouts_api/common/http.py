# payouts_api/common/http.py
from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from flask import jsonify

_TRUTHY = ("1", "true", "yes", "on")

# ---- response envelope ----
def _respond(status, success, **body):
    return jsonify({"success": success, **body}), status

def ok(data=None, status=200, **meta):
    """{"success": true, "data": ...}; keyword extras (counts, paymentType) go under "meta"."""
    body = {"data": data}
    if meta:
        body["meta"] = meta
    return _respond(status, True, **body)

def fail(message="Bad Request", status=400, code=None, detail=None):
    # code/detail are left out entirely when not given
    err = {"message": message}
    err.update((k, v) for k, v in (("code", code), ("detail", detail)) if v)
    return _respond(status, False, error=err)

# ---- request value parsing ----
def parse_date(value) -> Optional[date]:
    """YYYY-MM-DD → date; None for blanks and garbage."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None

def parse_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY

def parse_amount(value) -> Optional[float]:
    """Money input → float rounded to cents. Raises ValueError on junk."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    try:
        dec = Decimal(str(value))
    except InvalidOperation:
        raise ValueError("amount must be a number")
    if not dec.is_finite():
        raise ValueError("amount must be a number")
    return float(round(dec, 2))
