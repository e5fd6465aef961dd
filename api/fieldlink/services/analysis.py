"""
Transcript analysis: sentiment, sales opportunities, process adherence and
action items.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from fieldlink.core.errors import ValidationError
from fieldlink.core.tenancy import TenantRepository
from fieldlink.models.analysis_result import AnalysisResult
from fieldlink.models.process_template import ProcessTemplate
from fieldlink.models.recording import Recording, RecordingStatus
from fieldlink.schemas.analysis import ActionItem, Emotions, Opportunity, ProcessScore, Sentiment, StepScore

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 10000
STEP_DETECTED_THRESHOLD = 30
POSITIVE_WORDS = ("great", "excellent", "happy", "pleased", "love", "perfect")
NEGATIVE_WORDS = ("bad", "issue", "problem", "concern", "unhappy", "disappointed")
MOCK_CONTEXT = "Mock detection - OpenAI not configured"

SENTIMENT_PROMPT = """You are a sentiment analysis expert. Analyze the following conversation and provide:
1. overall: positive, negative, neutral or mixed
2. score: from -1 (very negative) to 1 (very positive)
3. emotions: joy, anger, surprise and sadness, each 0-1
4. keyPhrases: phrases that indicate sentiment

Respond in JSON format only."""

OPPORTUNITY_PROMPT = """You are a sales opportunity detection expert. Identify upsell, cross-sell,
renewal, expansion and follow-up opportunities in the conversation.

For each opportunity provide type (upsell, cross-sell, renewal, expansion, follow-up),
description, confidence (0-1), context (a quote from the conversation) and
priority (low, medium, high).

Respond in JSON format as {"opportunities": [...]}."""

ACTION_ITEM_PROMPT = """You are an action item extraction expert. Extract the action items,
tasks, follow-ups and decisions from the conversation.

For each item provide title, description, priority (low, medium, high),
category (follow-up, task, reminder, decision), and assignee and dueDate when mentioned.

Respond in JSON format as {"actionItems": [...]}."""

RECOMMENDATION_PROMPT = """You are a sales process expert. The following process steps were missed
in a conversation: {steps}. Provide 3-5 specific, actionable recommendations to improve process
adherence. Respond in JSON format as {{"recommendations": [...]}}."""


class KeywordAnalyzer:
    """Keyword heuristics used when no LLM is configured."""

    available = False

    async def sentiment(self, text: str) -> Sentiment:
        lowered = text.lower()
        positive = sum(1 for word in POSITIVE_WORDS if word in lowered)
        negative = sum(1 for word in NEGATIVE_WORDS if word in lowered)

        overall, score = "neutral", 0.0
        if positive > negative + 1:
            overall, score = "positive", 0.6
        elif negative > positive + 1:
            overall, score = "negative", -0.6
        elif positive and negative:
            overall, score = "mixed", 0.1

        return Sentiment(
            overall=overall,
            score=score,
            emotions=Emotions(
                joy=0.7 if overall == "positive" else 0.3,
                anger=0.6 if overall == "negative" else 0.1,
                surprise=0.2,
                sadness=0.4 if overall == "negative" else 0.1,
            ),
            key_phrases=["Mock analysis - OpenAI not configured"],
        )

    async def opportunities(self, text: str) -> List[Opportunity]:
        lowered = text.lower()
        found = []
        if "price" in lowered or "cost" in lowered:
            found.append(Opportunity(
                type="upsell",
                description="Customer discussing pricing - potential upsell opportunity",
                confidence=0.6,
                context=MOCK_CONTEXT,
                priority="medium",
            ))
        if "follow" in lowered or "next" in lowered:
            found.append(Opportunity(
                type="follow-up",
                description="Follow-up required",
                confidence=0.7,
                context=MOCK_CONTEXT,
                priority="high",
            ))
        return found

    async def action_items(self, text: str) -> List[ActionItem]:
        return [
            ActionItem(
                title="Review conversation",
                description="Mock action item - OpenAI not configured",
                priority="medium",
                category="task",
            )
        ]

    async def recommendations(self, missed_steps: List[str]) -> List[str]:
        return []


class OpenAIAnalyzer(KeywordAnalyzer):
    """Chat-completion prompts; any failure falls back to the keyword heuristics."""

    available = True

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: Optional[str] = None):
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    async def _complete(self, system: str, user: Optional[str] = None, temperature: float = 0.3) -> Dict[str, Any]:
        messages = [{"role": "system", "content": system}]
        if user is not None:
            messages.append({"role": "user", "content": user[:MAX_PROMPT_CHARS]})
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=temperature,
        )
        return json.loads(response.choices[0].message.content or "{}")

    async def sentiment(self, text: str) -> Sentiment:
        try:
            return Sentiment.model_validate(await self._complete(SENTIMENT_PROMPT, text))
        except Exception as exc:
            logger.error("OpenAI sentiment analysis failed: %s", exc)
            return await super().sentiment(text)

    async def opportunities(self, text: str) -> List[Opportunity]:
        try:
            payload = await self._complete(OPPORTUNITY_PROMPT, text)
            return [Opportunity.model_validate(item) for item in payload.get("opportunities", [])]
        except Exception as exc:
            logger.error("OpenAI opportunity detection failed: %s", exc)
            return await super().opportunities(text)

    async def action_items(self, text: str) -> List[ActionItem]:
        try:
            payload = await self._complete(ACTION_ITEM_PROMPT, text)
            return [ActionItem.model_validate(item) for item in payload.get("actionItems", [])]
        except Exception as exc:
            logger.error("OpenAI action item extraction failed: %s", exc)
            return await super().action_items(text)

    async def recommendations(self, missed_steps: List[str]) -> List[str]:
        try:
            payload = await self._complete(
                RECOMMENDATION_PROMPT.format(steps=", ".join(missed_steps)), temperature=0.5
            )
            return [str(item) for item in payload.get("recommendations", [])]
        except Exception as exc:
            logger.error("OpenAI recommendations failed: %s", exc)
            return []


def score_process_adherence(text: str, template: ProcessTemplate) -> ProcessScore:
    """Keyword coverage per step; a step counts as detected above 30%."""
    lowered = text.lower()
    steps = sorted(template.steps or [], key=lambda step: step.get("order", 0))

    step_scores = []
    for step in steps:
        keywords = step.get("keywords") or []
        matched = [keyword for keyword in keywords if keyword.lower() in lowered]
        score = len(matched) / max(len(keywords), 1) * 100
        step_scores.append(StepScore(
            name=step.get("name", ""),
            score=int(round(score)),
            detected=score > STEP_DETECTED_THRESHOLD,
            keywords=keywords,
            matched_keywords=matched,
        ))

    missed = [s.name for s in step_scores if not s.detected]
    return ProcessScore(
        overall_score=int(round(sum(s.score for s in step_scores) / len(step_scores))) if step_scores else 0,
        completed_steps=sum(1 for s in step_scores if s.detected),
        total_steps=len(steps),
        step_scores=step_scores,
        missed_steps=missed,
        recommendations=[],
        template_id=template.id,
    )


def overall_confidence(sentiment: Sentiment, opportunities: List[Opportunity], process: Optional[ProcessScore]) -> float:
    opportunity_confidence = sum(o.confidence for o in opportunities) / max(len(opportunities), 1)
    process_component = (process.overall_score if process and process.overall_score else 50) / 100
    return (sentiment.score + opportunity_confidence + process_component) / 3


async def active_template(repo: TenantRepository) -> Optional[ProcessTemplate]:
    """The default template, else the most used active one."""
    query = (
        repo.select(ProcessTemplate, ProcessTemplate.is_active.is_(True))
        .order_by(ProcessTemplate.is_default.desc(), ProcessTemplate.usage_count.desc(),
                  ProcessTemplate.created_at.asc())
        .limit(1)
    )
    result = await repo.db.execute(query)
    return result.scalar_one_or_none()


async def analyze_recording(repo: TenantRepository, analyzer: KeywordAnalyzer, recording_id) -> AnalysisResult:
    """Score a transcribed recording and upsert its AnalysisResult.

    A recording without a transcription is rejected before its status changes.
    Once ANALYZING, any failure moves the recording to FAILED.
    """
    db = repo.db
    recording = await repo.get_or_404(
        Recording, recording_id, selectinload(Recording.transcription), selectinload(Recording.analysis_result)
    )
    if recording.transcription is None:
        raise ValidationError("Recording must be transcribed before analysis")

    recording.status = RecordingStatus.ANALYZING
    await db.commit()

    try:
        text = recording.transcription.text
        template = await active_template(repo)
        sentiment, opportunities, action_items = await asyncio.gather(
            analyzer.sentiment(text),
            analyzer.opportunities(text),
            analyzer.action_items(text),
        )

        process = None
        if template is not None:
            process = score_process_adherence(text, template)
            if process.missed_steps:
                process.recommendations = await analyzer.recommendations(process.missed_steps) or [
                    f'Ensure to cover the "{step}" step in future conversations' for step in process.missed_steps
                ]
            template.usage_count = (template.usage_count or 0) + 1

        values = dict(
            sentiment=sentiment.model_dump(by_alias=True),
            process_score=process.model_dump(by_alias=True, mode="json") if process else {},
            sales_opportunities=[o.model_dump(by_alias=True) for o in opportunities],
            action_items=[a.model_dump(by_alias=True, exclude_none=True) for a in action_items],
            confidence=overall_confidence(sentiment, opportunities, process),
        )
        analysis = recording.analysis_result
        if analysis is None:
            analysis = AnalysisResult(recording_id=recording.id, **values)
            db.add(analysis)
        else:
            for key, value in values.items():
                setattr(analysis, key, value)

        recording.status = RecordingStatus.COMPLETED
        await db.commit()
    except Exception:
        logger.exception("Analysis failed", extra={"recording_id": str(recording.id)})
        await db.rollback()
        recording.status = RecordingStatus.FAILED
        db.add(recording)
        await db.commit()
        raise

    result = await db.execute(select(AnalysisResult).where(AnalysisResult.recording_id == recording.id))
    return result.scalar_one()
