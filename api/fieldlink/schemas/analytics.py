"""
Analytics schemas
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from fieldlink.schemas.common import CamelModel


class UserRef(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str


class SentimentDistribution(CamelModel):
    positive: int = 0
    negative: int = 0
    neutral: int = 0
    mixed: int = 0


# Dashboard

class DashboardOverview(CamelModel):
    total_recordings: int
    completed_recordings: int
    total_duration: int
    average_confidence: float
    total_opportunities: int
    process_adherence_avg: int


class RecentRecording(CamelModel):
    id: uuid.UUID
    title: str
    status: str
    duration: Optional[int] = None
    created_at: datetime
    user: Optional[UserRef] = None
    sentiment: Optional[Dict[str, Any]] = None
    confidence: Optional[float] = None


class DashboardStats(CamelModel):
    overview: DashboardOverview
    sentiment_distribution: SentimentDistribution
    recent_recordings: List[RecentRecording]
    date_range: str


# Conversations

class ConversationTrend(CamelModel):
    period: str
    count: int
    total_duration: int
    avg_duration: int
    avg_confidence: float
    sentiment_distribution: SentimentDistribution


class ConversationPerformer(CamelModel):
    user: Optional[UserRef] = None
    recordings_count: int
    total_duration: int
    avg_confidence: float


class ConversationSummary(CamelModel):
    total_recordings: int
    total_duration: int
    avg_duration: int


class ConversationAnalytics(CamelModel):
    trends: List[ConversationTrend]
    top_performers: List[ConversationPerformer]
    summary: ConversationSummary


# Sentiment

class SentimentTrend(CamelModel):
    period: str
    avg_score: float
    distribution: SentimentDistribution
    count: int


class SentimentOverall(CamelModel):
    avg_score: float
    distribution: SentimentDistribution
    total_analyzed: int


class SentimentAnalytics(CamelModel):
    trends: List[SentimentTrend]
    overall: SentimentOverall
    key_phrases: List[str]


# Process adherence

class AdherenceOverall(CamelModel):
    avg_score: float
    avg_completion: float
    total_analyzed: int


class StepBreakdown(CamelModel):
    name: str
    avg_score: float
    detected: int
    total: int
    detection_rate: float


class MissedStep(CamelModel):
    step: str
    count: int
    percentage: float


class AdherencePerformer(CamelModel):
    user: Optional[UserRef] = None
    avg_score: float
    recordings_count: int


class ProcessAdherenceAnalytics(CamelModel):
    overall: AdherenceOverall
    step_breakdown: List[StepBreakdown]
    commonly_missed_steps: List[MissedStep]
    team_performance: List[AdherencePerformer]


# Opportunities

class OpportunityEntry(CamelModel):
    type: str
    description: str = ""
    confidence: float = 0.0
    context: str = ""
    priority: str = ""
    recording_id: uuid.UUID
    recording_title: str
    user: Optional[UserRef] = None
    created_at: datetime


class OpportunityStats(CamelModel):
    total: int
    by_type: Dict[str, int]
    by_priority: Dict[str, int]
    avg_confidence: float


class OpportunityAnalytics(CamelModel):
    opportunities: List[OpportunityEntry]
    stats: OpportunityStats


# Team

class TeamMemberRef(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    avatar_url: Optional[str] = None
    role: str


class TeamMemberMetrics(CamelModel):
    total_recordings: int
    total_duration: int
    avg_duration: int
    avg_sentiment: float
    avg_process_score: float
    total_opportunities: int


class TeamMember(CamelModel):
    user: TeamMemberRef
    metrics: TeamMemberMetrics


class TeamAverage(CamelModel):
    avg_recordings: float
    avg_duration: int
    avg_sentiment: float
    avg_process_score: float
    aggregation: str = "mean_of_user_means"


class TeamPerformance(CamelModel):
    team_members: List[TeamMember]
    team_average: TeamAverage
    total_members: int
