import pytest

from core.audit import log_event
from core.audit_constants import EVENT_CONTENT_VERSION_CREATED
from core.models import AuditEvent


def test_audit_rejects_body_metadata(db_session):
    before = db_session.query(AuditEvent).count()
    with pytest.raises(ValueError):
        log_event(
            db_session,
            event_type=EVENT_CONTENT_VERSION_CREATED,
            actor_type="system",
            target_type="content_version",
            target_ids=["v-1"],
            metadata={"body_markdown": "should_not_log"},
        )
    db_session.rollback()
    after = db_session.query(AuditEvent).count()
    assert after == before


def test_audit_rejects_long_strings(db_session):
    before = db_session.query(AuditEvent).count()
    with pytest.raises(ValueError):
        log_event(
            db_session,
            event_type=EVENT_CONTENT_VERSION_CREATED,
            actor_type="system",
            target_type="content_version",
            target_ids=["v-1"],
            metadata={"note": "x" * 600},
        )
    db_session.rollback()
    after = db_session.query(AuditEvent).count()
    assert after == before


def test_audit_allows_identifiers(db_session):
    log_event(
        db_session,
        event_type=EVENT_CONTENT_VERSION_CREATED,
        actor_type="agent",
        target_type="content_version",
        target_ids=["v-1"],
        metadata={"content_id": "c-1", "version": 3},
    )
    db_session.commit()
    event = db_session.query(AuditEvent).one()
    assert event.metadata_ == {"content_id": "c-1", "version": 3}
