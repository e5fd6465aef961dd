"""
Analytics aggregation

Pure functions over recordings that were loaded with their `user` and
`analysis_result` relationships. Nothing here touches the database. Every mean
over an empty input is 0.
"""
from collections import Counter, OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fieldlink.core.database import as_utc, utcnow
from fieldlink.models.recording import RecordingStatus
from fieldlink.schemas.analytics import (
    AdherenceOverall,
    AdherencePerformer,
    ConversationAnalytics,
    ConversationPerformer,
    ConversationSummary,
    ConversationTrend,
    DashboardOverview,
    DashboardStats,
    MissedStep,
    OpportunityAnalytics,
    OpportunityEntry,
    OpportunityStats,
    ProcessAdherenceAnalytics,
    RecentRecording,
    SentimentAnalytics,
    SentimentDistribution,
    SentimentOverall,
    SentimentTrend,
    StepBreakdown,
    TeamAverage,
    TeamMember,
    TeamMemberMetrics,
    TeamMemberRef,
    TeamPerformance,
    UserRef,
)

SENTIMENT_LABELS = ("positive", "negative", "neutral", "mixed")
OPPORTUNITY_TYPES = ("upsell", "cross-sell", "renewal", "expansion", "follow-up")
PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}
GROUP_BY_CHOICES = ("day", "week", "month")
STEP_DETECTED_THRESHOLD = 30
DEFAULT_DATE_RANGE = "30"


def mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def date_range_start(date_range: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Lower bound `now - N days`; None when the range is not a positive integer."""
    try:
        days = int(date_range)
    except (TypeError, ValueError):
        return None
    if days <= 0:
        return None
    return (now or utcnow()) - timedelta(days=days)


def bucket_key(created_at: datetime, group_by: str) -> str:
    """Period key for a timestamp; keys sort chronologically."""
    created_at = as_utc(created_at)
    if group_by == "week":
        # Weeks start on Sunday
        week_start = created_at.date() - timedelta(days=(created_at.weekday() + 1) % 7)
        return week_start.isoformat()
    if group_by == "month":
        return created_at.strftime("%Y-%m")
    return created_at.date().isoformat()


def group_by_period(recordings: Iterable[Any], group_by: str) -> List[Tuple[str, List[Any]]]:
    groups: Dict[str, List[Any]] = {}
    for recording in recordings:
        groups.setdefault(bucket_key(recording.created_at, group_by), []).append(recording)
    return sorted(groups.items(), key=lambda item: item[0])


def _sentiment(analysis) -> Dict[str, Any]:
    return (analysis.sentiment or {}) if analysis is not None else {}


def _process_score(analysis) -> Dict[str, Any]:
    return (analysis.process_score or {}) if analysis is not None else {}


def _opportunities(analysis) -> List[Dict[str, Any]]:
    return (analysis.sales_opportunities or []) if analysis is not None else []


def sentiment_label(sentiment: Dict[str, Any]) -> str:
    label = sentiment.get("overall")
    return label if label in SENTIMENT_LABELS else "neutral"


def sentiment_histogram(sentiments: Iterable[Dict[str, Any]]) -> SentimentDistribution:
    counts = Counter(sentiment_label(s) for s in sentiments)
    return SentimentDistribution(**{label: counts.get(label, 0) for label in SENTIMENT_LABELS})


def user_ref(user) -> Optional[UserRef]:
    if user is None:
        return None
    return UserRef(id=user.id, first_name=user.first_name, last_name=user.last_name)


def _duration(recording) -> int:
    return recording.duration or 0


def _by_user(recordings: Iterable[Any]) -> "OrderedDict[Any, List[Any]]":
    grouped: "OrderedDict[Any, List[Any]]" = OrderedDict()
    for recording in recordings:
        grouped.setdefault(recording.user_id, []).append(recording)
    return grouped


def dashboard(
    total_recordings: int,
    completed_recordings: int,
    total_duration: int,
    analyses: Sequence[Any],
    recent: Sequence[Any],
    date_range: str,
) -> DashboardStats:
    process_scores = [_process_score(a).get("overallScore") or 0 for a in analyses]
    process_scores = [score for score in process_scores if score > 0]

    return DashboardStats(
        overview=DashboardOverview(
            total_recordings=total_recordings,
            completed_recordings=completed_recordings,
            total_duration=total_duration or 0,
            average_confidence=round(mean(a.confidence or 0 for a in analyses), 2),
            total_opportunities=sum(len(_opportunities(a)) for a in analyses),
            process_adherence_avg=int(round(mean(process_scores))),
        ),
        sentiment_distribution=sentiment_histogram(_sentiment(a) for a in analyses),
        recent_recordings=[
            RecentRecording(
                id=r.id,
                title=r.title,
                status=r.status.value if isinstance(r.status, RecordingStatus) else str(r.status),
                duration=r.duration,
                created_at=r.created_at,
                user=user_ref(r.user),
                sentiment=_sentiment(r.analysis_result) or None,
                confidence=r.analysis_result.confidence if r.analysis_result is not None else None,
            )
            for r in recent
        ],
        date_range=str(date_range),
    )


def conversations(recordings: Sequence[Any], group_by: str = "day") -> ConversationAnalytics:
    trends = []
    for period, group in group_by_period(recordings, group_by):
        analysed = [r.analysis_result for r in group if r.analysis_result is not None]
        total_duration = sum(_duration(r) for r in group)
        trends.append(
            ConversationTrend(
                period=period,
                count=len(group),
                total_duration=total_duration,
                avg_duration=int(round(mean(_duration(r) for r in group))),
                avg_confidence=round(mean(a.confidence or 0 for a in analysed), 2),
                sentiment_distribution=sentiment_histogram(_sentiment(a) for a in analysed),
            )
        )

    performers = []
    for user_recordings in _by_user(recordings).values():
        analysed = [r.analysis_result for r in user_recordings if r.analysis_result is not None]
        performers.append(
            ConversationPerformer(
                user=user_ref(user_recordings[0].user),
                recordings_count=len(user_recordings),
                total_duration=sum(_duration(r) for r in user_recordings),
                avg_confidence=round(mean(a.confidence or 0 for a in analysed), 2),
            )
        )
    performers.sort(key=lambda p: p.avg_confidence, reverse=True)

    total_duration = sum(_duration(r) for r in recordings)
    return ConversationAnalytics(
        trends=trends,
        top_performers=performers[:10],
        summary=ConversationSummary(
            total_recordings=len(recordings),
            total_duration=total_duration,
            avg_duration=int(round(total_duration / max(len(recordings), 1))),
        ),
    )


def sentiment(recordings: Sequence[Any], group_by: str = "day") -> SentimentAnalytics:
    analysed = [r for r in recordings if r.analysis_result is not None]

    trends = []
    for period, group in group_by_period(analysed, group_by):
        sentiments = [s for s in (_sentiment(r.analysis_result) for r in group) if s]
        trends.append(
            SentimentTrend(
                period=period,
                avg_score=round(mean(s.get("score") or 0 for s in sentiments), 2),
                distribution=sentiment_histogram(sentiments),
                count=len(sentiments),
            )
        )

    sentiments = [s for s in (_sentiment(r.analysis_result) for r in analysed) if s]
    phrases = [
        phrase
        for s in sentiments
        for phrase in (s.get("keyPhrases") or [])
        if phrase and "Mock" not in phrase
    ]
    return SentimentAnalytics(
        trends=trends,
        overall=SentimentOverall(
            avg_score=round(mean(s.get("score") or 0 for s in sentiments), 2),
            distribution=sentiment_histogram(sentiments),
            total_analyzed=len(sentiments),
        ),
        key_phrases=list(OrderedDict.fromkeys(phrases))[:10],
    )


def process_adherence(recordings: Sequence[Any], template_id: Optional[str] = None) -> ProcessAdherenceAnalytics:
    scored = []
    for recording in recordings:
        score = _process_score(recording.analysis_result)
        if not score:
            continue
        if template_id and str(score.get("templateId")) != str(template_id):
            continue
        scored.append((recording, score))
    scores = [score for _, score in scored]
    analysed = len(scores)

    missed = Counter(step for score in scores for step in (score.get("missedSteps") or []))
    commonly_missed = [
        MissedStep(step=step, count=count, percentage=round(count / analysed * 100, 1))
        for step, count in sorted(missed.items(), key=lambda item: item[1], reverse=True)[:10]
    ]

    step_scores: "OrderedDict[str, List[float]]" = OrderedDict()
    for score in scores:
        for step in score.get("stepScores") or []:
            step_scores.setdefault(step.get("name"), []).append(step.get("score") or 0)
    breakdown = []
    for name, values in step_scores.items():
        detected = sum(1 for value in values if value > STEP_DETECTED_THRESHOLD)
        breakdown.append(
            StepBreakdown(
                name=name,
                avg_score=round(mean(values), 1),
                detected=detected,
                total=len(values),
                detection_rate=round(detected / len(values) * 100, 1),
            )
        )
    breakdown.sort(key=lambda step: step.avg_score, reverse=True)

    performers = []
    for user_recordings in _by_user(r for r, _ in scored).values():
        values = [_process_score(r.analysis_result).get("overallScore") or 0 for r in user_recordings]
        performers.append(
            AdherencePerformer(
                user=user_ref(user_recordings[0].user),
                avg_score=round(mean(values), 1),
                recordings_count=len(values),
            )
        )
    performers.sort(key=lambda p: p.avg_score, reverse=True)

    return ProcessAdherenceAnalytics(
        overall=AdherenceOverall(
            avg_score=round(mean(s.get("overallScore") or 0 for s in scores), 1),
            avg_completion=round(
                mean((s.get("completedSteps") or 0) / max(s.get("totalSteps") or 1, 1) for s in scores) * 100, 1
            ),
            total_analyzed=analysed,
        ),
        step_breakdown=breakdown,
        commonly_missed_steps=commonly_missed,
        team_performance=performers[:10],
    )


def rank_opportunities(opportunities: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Highest priority first, then highest confidence."""
    return sorted(
        opportunities,
        key=lambda o: (-PRIORITY_RANK.get(o.get("priority"), 0), -(o.get("confidence") or 0)),
    )


def opportunities(
    recordings: Sequence[Any],
    type: Optional[str] = None,
    priority: Optional[str] = None,
    limit: int = 100,
) -> OpportunityAnalytics:
    candidates = []
    for recording in recordings:
        for opportunity in _opportunities(recording.analysis_result):
            candidates.append(
                dict(
                    opportunity,
                    recording_id=recording.id,
                    recording_title=recording.title,
                    user=user_ref(recording.user),
                    created_at=recording.created_at,
                )
            )

    selected = [
        o for o in candidates
        if (not type or o.get("type") == type) and (not priority or o.get("priority") == priority)
    ]
    ranked = rank_opportunities(selected)[:limit]

    type_counts = Counter(o.get("type") for o in candidates)
    priority_counts = Counter(o.get("priority") for o in candidates)
    return OpportunityAnalytics(
        opportunities=[OpportunityEntry.model_validate(o) for o in ranked],
        stats=OpportunityStats(
            total=len(candidates),
            by_type={name: type_counts.get(name, 0) for name in OPPORTUNITY_TYPES},
            by_priority={name: priority_counts.get(name, 0) for name in ("high", "medium", "low")},
            avg_confidence=round(mean(o.get("confidence") or 0 for o in candidates), 2),
        ),
    )


def team_performance(users: Sequence[Any], recordings: Sequence[Any]) -> TeamPerformance:
    """Per-user metrics; team averages are means of the per-user means."""
    by_user = _by_user(recordings)

    members = []
    for user in users:
        user_recordings = by_user.get(user.id, [])
        analysed = [r.analysis_result for r in user_recordings if r.analysis_result is not None]
        total_duration = sum(_duration(r) for r in user_recordings)
        members.append(
            TeamMember(
                user=TeamMemberRef(
                    id=user.id,
                    name=user.full_name,
                    email=user.email,
                    avatar_url=user.avatar_url,
                    role=user.role.value,
                ),
                metrics=TeamMemberMetrics(
                    total_recordings=len(user_recordings),
                    total_duration=total_duration,
                    avg_duration=int(round(total_duration / len(user_recordings))) if user_recordings else 0,
                    avg_sentiment=round(mean(_sentiment(a).get("score") or 0 for a in analysed), 2),
                    avg_process_score=round(mean(_process_score(a).get("overallScore") or 0 for a in analysed), 1),
                    total_opportunities=sum(len(_opportunities(a)) for a in analysed),
                ),
            )
        )
    members.sort(key=lambda m: m.metrics.total_recordings, reverse=True)

    metrics = [m.metrics for m in members]
    return TeamPerformance(
        team_members=members,
        team_average=TeamAverage(
            avg_recordings=round(mean(m.total_recordings for m in metrics), 1),
            avg_duration=int(round(mean(m.avg_duration for m in metrics))),
            avg_sentiment=round(mean(m.avg_sentiment for m in metrics), 2),
            avg_process_score=round(mean(m.avg_process_score for m in metrics), 1),
        ),
        total_members=len(members),
    )
