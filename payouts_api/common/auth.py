# payouts_api/common/auth.py
from __future__ import annotations

from functools import wraps
from typing import Optional, Set

from flask import g
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from payouts_api.common.http import fail
from payouts_api.services.calendar_store import CalendarStore


# ---------- helpers ----------

def current_owner_id() -> Optional[str]:
    uid = get_jwt_identity()
    return str(uid) if uid is not None else None


def _jwt_roles() -> Set[str]:
    claims = get_jwt() or {}
    return set(claims.get("roles") or [])


def is_admin() -> bool:
    return "admin" in _jwt_roles()


# ---------- decorators ----------

def requires_calendar_owner(fn):
    """
    JWT required, and the identity must own the calendar named by the
    `calendar_id` route arg. Tokens carrying the 'admin' role always pass.
    The loaded calendar is left on `g.calendar`.
    """
    @wraps(fn)
    @jwt_required()
    def inner(*args, **kwargs):
        uid = current_owner_id()
        if uid is None:
            return fail("Unauthorized", status=401)

        cal = CalendarStore.get_calendar_by_id(kwargs.get("calendar_id"))
        if cal is None:
            return fail("Calendar not found", status=404, code="NOT_FOUND")

        if cal.owner_id != uid and not is_admin():
            return fail("Forbidden", status=403)

        g.calendar = cal
        return fn(*args, **kwargs)
    return inner
