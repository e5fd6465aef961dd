"""
Analytics endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import selectinload

from fieldlink.core.dependencies import get_tenant, require_roles
from fieldlink.core.tenancy import TenantRepository
from fieldlink.models.recording import Recording, RecordingStatus
from fieldlink.models.user import User, UserRole
from fieldlink.schemas.analytics import (
    ConversationAnalytics,
    DashboardStats,
    OpportunityAnalytics,
    ProcessAdherenceAnalytics,
    SentimentAnalytics,
    TeamPerformance,
)
from fieldlink.schemas.common import ApiResponse
from fieldlink.services import analytics
from fieldlink.services.analytics import DEFAULT_DATE_RANGE, GROUP_BY_CHOICES

router = APIRouter()

RECENT_RECORDINGS = 5
GROUP_BY_PATTERN = f"^({'|'.join(GROUP_BY_CHOICES)})$"


async def load_recordings(
    repo: TenantRepository, date_range: str, user_id: Optional[str] = None
) -> List[Recording]:
    """Recordings in the window with the relationships the aggregator reads"""
    query = repo.recordings_since(
        analytics.date_range_start(date_range),
        user_id=user_id,
        options=(selectinload(Recording.user), selectinload(Recording.analysis_result)),
    )
    return await repo.all(query.order_by(Recording.created_at.desc()))


@router.get("/dashboard", response_model=ApiResponse[DashboardStats])
async def get_dashboard_stats(
    date_range: str = Query(DEFAULT_DATE_RANGE, alias="dateRange"),
    user_id: Optional[str] = Query(None, alias="userId"),
    repo: TenantRepository = Depends(get_tenant),
):
    recordings = await load_recordings(repo, date_range, user_id)
    stats = analytics.dashboard(
        total_recordings=len(recordings),
        completed_recordings=sum(1 for r in recordings if r.status == RecordingStatus.COMPLETED),
        total_duration=sum(r.duration or 0 for r in recordings),
        analyses=[r.analysis_result for r in recordings if r.analysis_result is not None],
        recent=recordings[:RECENT_RECORDINGS],
        date_range=date_range,
    )
    return ApiResponse(data=stats)


@router.get("/conversations", response_model=ApiResponse[ConversationAnalytics])
async def get_conversation_analytics(
    date_range: str = Query(DEFAULT_DATE_RANGE, alias="dateRange"),
    user_id: Optional[str] = Query(None, alias="userId"),
    group_by: str = Query("day", alias="groupBy", pattern=GROUP_BY_PATTERN),
    repo: TenantRepository = Depends(get_tenant),
):
    recordings = await load_recordings(repo, date_range, user_id)
    return ApiResponse(data=analytics.conversations(recordings, group_by))


@router.get("/sentiment", response_model=ApiResponse[SentimentAnalytics])
async def get_sentiment_analytics(
    date_range: str = Query(DEFAULT_DATE_RANGE, alias="dateRange"),
    user_id: Optional[str] = Query(None, alias="userId"),
    group_by: str = Query("day", alias="groupBy", pattern=GROUP_BY_PATTERN),
    repo: TenantRepository = Depends(get_tenant),
):
    recordings = await load_recordings(repo, date_range, user_id)
    return ApiResponse(data=analytics.sentiment(recordings, group_by))


@router.get("/process-adherence", response_model=ApiResponse[ProcessAdherenceAnalytics])
async def get_process_adherence(
    date_range: str = Query(DEFAULT_DATE_RANGE, alias="dateRange"),
    user_id: Optional[str] = Query(None, alias="userId"),
    template_id: Optional[str] = Query(None, alias="templateId"),
    repo: TenantRepository = Depends(get_tenant),
):
    recordings = await load_recordings(repo, date_range, user_id)
    return ApiResponse(data=analytics.process_adherence(recordings, template_id))


@router.get("/opportunities", response_model=ApiResponse[OpportunityAnalytics])
async def get_sales_opportunities(
    date_range: str = Query(DEFAULT_DATE_RANGE, alias="dateRange"),
    user_id: Optional[str] = Query(None, alias="userId"),
    type: Optional[str] = Query(None, pattern="^(upsell|cross-sell|renewal|expansion|follow-up)$"),
    priority: Optional[str] = Query(None, pattern="^(low|medium|high)$"),
    repo: TenantRepository = Depends(get_tenant),
):
    recordings = await load_recordings(repo, date_range, user_id)
    return ApiResponse(data=analytics.opportunities(recordings, type=type, priority=priority))


@router.get("/team", response_model=ApiResponse[TeamPerformance])
async def get_team_performance(
    date_range: str = Query(DEFAULT_DATE_RANGE, alias="dateRange"),
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(require_roles(UserRole.MANAGER, UserRole.ADMIN)),
):
    """Per-member metrics for active users; managers and admins only"""
    users = await repo.all(repo.select(User, User.is_active.is_(True)).order_by(User.created_at.asc()))
    recordings = await load_recordings(repo, date_range)
    return ApiResponse(data=analytics.team_performance(users, recordings))
