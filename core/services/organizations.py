"""
Organization membership lookups.

Membership is owned by the auth provider; this table mirrors it so the
workspace compiler can search a user's other organizations.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.db import DB
from core.models import OrganizationMember
from core.services.content_shared import _validate_organization_id, _validate_required_text, MAX_SHORT_TEXT_LENGTH


def add_member(organization_id: str, user_id: str, role: str = "member") -> dict:
    organization_id = _validate_organization_id(organization_id)
    _validate_required_text(user_id, "user_id", MAX_SHORT_TEXT_LENGTH)
    db = DB.SessionLocal()
    try:
        existing = db.get(OrganizationMember, (organization_id, user_id))
        if existing is not None:
            return {"status": "ok", "created": False}
        db.add(OrganizationMember(organization_id=organization_id, user_id=user_id, role=role))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return {"status": "ok", "created": False}
        return {"status": "ok", "created": True}
    finally:
        db.close()


def list_member_organization_ids(db, user_id: Optional[str]) -> list[str]:
    if not user_id:
        return []
    rows = (
        db.query(OrganizationMember.organization_id)
        .filter(OrganizationMember.user_id == str(user_id))
        .order_by(OrganizationMember.created_at.asc(), OrganizationMember.organization_id.asc())
        .all()
    )
    return [row[0] for row in rows]
