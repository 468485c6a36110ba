"""
Statistics endpoints for the developer and agent dashboards.
"""
import io

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import developer_statistics_key, get_db, get_query_cache, run_in_session
from app.core.auth import User, require_role
from app.core.cache import QueryCache
from app.schemas.statistics import AgentStatisticsOut, DeveloperStatisticsOut
from app.services.statistics import agent_statistics, developer_statistics, developer_statistics_csv

router = APIRouter(prefix="/statistics", tags=["statistics"])


async def _developer_stats(cache: QueryCache, developer_id: str, refresh: bool) -> DeveloperStatisticsOut:
    query = cache.query(
        developer_statistics_key(developer_id),
        lambda: run_in_session(developer_statistics, developer_id),
    )
    state = await (query.refetch() if refresh else query.load())
    if not state.ok:
        raise HTTPException(status_code=500, detail="Failed to load statistics. Please try again later.")
    return state.data


@router.get("/developer", response_model=DeveloperStatisticsOut)
async def get_developer_statistics(
    refresh: bool = Query(False, description="recompute instead of serving the cached copy"),
    current_user: User = Depends(require_role("developer")),
    cache: QueryCache = Depends(get_query_cache),
):
    return await _developer_stats(cache, current_user.id, refresh)


@router.get("/developer/export")
async def export_developer_statistics(
    current_user: User = Depends(require_role("developer")),
    cache: QueryCache = Depends(get_query_cache),
):
    stats = await _developer_stats(cache, current_user.id, refresh=False)
    filename = f"developer-statistics-{stats.last_updated.date().isoformat()}.csv"
    return StreamingResponse(
        io.BytesIO(developer_statistics_csv(stats).encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/agent", response_model=AgentStatisticsOut)
def get_agent_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role("agent")),
):
    return agent_statistics(db, current_user.id)
