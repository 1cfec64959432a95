import os

os.environ.setdefault("DB_BACKEND", "sqlite")
os.environ.setdefault("REQUIRE_MCP_AUTH", "false")
os.environ.setdefault("GENERATION_PROVIDER", "none")
os.environ.setdefault("WORKSPACE_CACHE_BACKEND", "memory")

from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from core.db import DB, build_engine
from core.errors import GenerationFailure
from core.models import Base
from core.services.content_generation import ContentGenerator, GenerationResult, set_content_generator
from core.services.workspace_cache import InMemoryCacheStore, WorkspaceCache, set_workspace_cache


class FakeContentGenerator(ContentGenerator):
    """Echoes the instructions back as the new section body."""

    def __init__(self):
        self.requests = []
        self.fail_with = None
        self.reply_body = None

    def generate(self, request):
        self.requests.append(request)
        if self.fail_with is not None:
            raise GenerationFailure(self.fail_with)
        return GenerationResult(
            body=self.reply_body if self.reply_body is not None else f"Rewritten: {request.instructions}",
            summary=f"Summary of {request.section_title}",
        )


@pytest.fixture
def server_db(tmp_path):
    db_path = tmp_path / "draftdesk.sqlite"
    engine = build_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    previous_engine = DB.engine
    previous_session = DB.SessionLocal
    DB.engine = engine
    DB.SessionLocal = SessionLocal

    cache = WorkspaceCache(InMemoryCacheStore(max_entries=100))
    generator = FakeContentGenerator()
    set_workspace_cache(cache)
    set_content_generator(generator)
    try:
        yield SimpleNamespace(engine=engine, cache=cache, generator=generator)
    finally:
        set_workspace_cache(None)
        set_content_generator(None)
        DB.engine = previous_engine
        DB.SessionLocal = previous_session
        engine.dispose()


@pytest.fixture
def db_session(server_db):
    db = DB.SessionLocal()
    try:
        yield db
    finally:
        db.close()
