from typing import Any, Callable, Generator, TypeVar

from fastapi import Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.cache import QueryCache
from app.core.database import SessionLocal
from app.core.storage import StorageClient

T = TypeVar("T")

MARKETPLACE_PREFIX = "marketplace:"
AGENT_PROJECTS_PREFIX = "agent-projects-"


def agent_projects_key(agent_id: str) -> str:
    return f"{AGENT_PROJECTS_PREFIX}{agent_id}"


def developer_statistics_key(developer_id: str) -> str:
    return f"developer-statistics-{developer_id}"


def marketplace_key(*filters) -> str:
    # distinct filter sets map to distinct keys
    return f"{MARKETPLACE_PREFIX}{filters!r}"


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def run_in_session(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Run fn(db, *args, **kwargs) in the thread pool with its own session.

    Used by async handlers and by cached producers, which may run after the
    request that scheduled them has finished.
    """
    def call() -> T:
        db = SessionLocal()
        try:
            return fn(db, *args, **kwargs)
        finally:
            db.close()

    return await run_in_threadpool(call)


def get_query_cache(request: Request) -> QueryCache:
    """The process-wide query cache created in the application lifespan."""
    return request.app.state.query_cache


def get_storage(request: Request) -> StorageClient:
    return request.app.state.storage


def invalidate_project_views(cache: QueryCache, developer_id: str) -> None:
    """Drop every cached read that includes a developer's projects."""
    cache.invalidate_prefix(MARKETPLACE_PREFIX)
    cache.invalidate_prefix(AGENT_PROJECTS_PREFIX)
    cache.invalidate(developer_statistics_key(developer_id))
