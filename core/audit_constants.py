"""
Canonical audit event type strings.
"""

EVENT_CONTENT_CREATED = "content.created"
EVENT_CONTENT_VERSION_CREATED = "content.version_created"
EVENT_CONTENT_SECTION_PATCHED = "content.section_patched"
EVENT_CONTENT_VERSION_REVERTED = "content.version_reverted"
EVENT_SOURCE_INGEST_STATUS_CHANGED = "source.ingest_status_changed"

__all__ = [
    "EVENT_CONTENT_CREATED",
    "EVENT_CONTENT_VERSION_CREATED",
    "EVENT_CONTENT_SECTION_PATCHED",
    "EVENT_CONTENT_VERSION_REVERTED",
    "EVENT_SOURCE_INGEST_STATUS_CHANGED",
]
