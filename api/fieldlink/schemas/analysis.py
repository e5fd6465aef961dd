"""
Analysis schemas
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import Field
from fieldlink.schemas.common import CamelModel

Priority = Literal["low", "medium", "high"]


class Emotions(CamelModel):
    joy: float = 0.0
    anger: float = 0.0
    surprise: float = 0.0
    sadness: float = 0.0


class Sentiment(CamelModel):
    overall: Literal["positive", "negative", "neutral", "mixed"] = "neutral"
    score: float = Field(0.0, ge=-1, le=1)
    emotions: Emotions = Emotions()
    key_phrases: List[str] = []


class Opportunity(CamelModel):
    type: Literal["upsell", "cross-sell", "renewal", "expansion", "follow-up"]
    description: str
    confidence: float = Field(ge=0, le=1)
    context: str = ""
    priority: Priority = "medium"


class StepScore(CamelModel):
    name: str
    score: int
    detected: bool
    keywords: List[str]
    matched_keywords: List[str]


class ProcessScore(CamelModel):
    overall_score: int
    completed_steps: int
    total_steps: int
    step_scores: List[StepScore]
    missed_steps: List[str]
    recommendations: List[str]
    template_id: Optional[uuid.UUID] = None


class ActionItem(CamelModel):
    title: str
    description: str = ""
    priority: Priority = "medium"
    category: Literal["follow-up", "task", "reminder", "decision"] = "task"
    due_date: Optional[str] = None
    assignee: Optional[str] = None


class AnalysisResponse(CamelModel):
    id: uuid.UUID
    recording_id: uuid.UUID
    sentiment: Dict[str, Any]
    process_score: Dict[str, Any]
    sales_opportunities: List[Dict[str, Any]]
    action_items: List[Dict[str, Any]]
    confidence: float
    created_at: datetime
    updated_at: datetime
