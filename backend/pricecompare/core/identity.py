"""Submitter identity.

Authentication happens upstream; the gateway forwards who is calling in
``X-Submitter-Type`` (anonymous | store | admin) plus ``X-Store-Id`` or
``X-Admin-Id`` / ``X-Admin-Role``. The service trusts these headers.
"""
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Header

from pricecompare.core.errors import ValidationError


@dataclass(frozen=True)
class Anonymous:
    kind: str = "anonymous"


@dataclass(frozen=True)
class StoreSubmitter:
    store_id: int
    kind: str = "store"


@dataclass(frozen=True)
class AdminSubmitter:
    admin_id: int
    role: str = "ADMIN"
    kind: str = "admin"


Submitter = Union[Anonymous, StoreSubmitter, AdminSubmitter]


def _parse_id(raw: Optional[str], header: str) -> int:
    try:
        value = int(raw) if raw is not None else None
    except ValueError:
        value = None
    if value is None or value <= 0:
        raise ValidationError.for_field(header, f"{header} must be a positive integer")
    return value


def resolve_submitter(
    submitter_type: Optional[str],
    store_id: Optional[str] = None,
    admin_id: Optional[str] = None,
    admin_role: Optional[str] = None,
) -> Submitter:
    kind = (submitter_type or "anonymous").strip().lower()
    if kind == "anonymous":
        return Anonymous()
    if kind == "store":
        return StoreSubmitter(store_id=_parse_id(store_id, "X-Store-Id"))
    if kind == "admin":
        return AdminSubmitter(admin_id=_parse_id(admin_id, "X-Admin-Id"), role=admin_role or "ADMIN")
    raise ValidationError.for_field("X-Submitter-Type", f"Unknown submitter type '{submitter_type}'")


async def get_submitter(
    x_submitter_type: Optional[str] = Header(None),
    x_store_id: Optional[str] = Header(None),
    x_admin_id: Optional[str] = Header(None),
    x_admin_role: Optional[str] = Header(None),
) -> Submitter:
    """FastAPI dependency building the submitter from gateway headers."""
    return resolve_submitter(x_submitter_type, x_store_id, x_admin_id, x_admin_role)
