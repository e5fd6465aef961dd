"""
Transcription search endpoints
"""
import re
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import selectinload

from fieldlink.core.dependencies import get_pagination, get_tenant
from fieldlink.core.tenancy import TenantRepository
from fieldlink.models.transcription import Transcription
from fieldlink.schemas.common import PaginatedResponse, PaginationParams
from fieldlink.schemas.transcription import SearchRecording, TranscriptionSearchHit

router = APIRouter()

MAX_SNIPPETS = 3
SNIPPET_CONTEXT = 100


def highlight_snippets(text: str, query: str, limit: int = MAX_SNIPPETS, context: int = SNIPPET_CONTEXT) -> List[str]:
    """Up to `limit` excerpts around case-insensitive matches, each match wrapped in <mark>"""
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    snippets = []
    for match in pattern.finditer(text):
        if len(snippets) >= limit:
            break
        start = max(0, match.start() - context)
        end = min(len(text), match.end() + context)
        snippet = pattern.sub(lambda m: f"<mark>{m.group(0)}</mark>", text[start:end])
        snippets.append(("..." if start > 0 else "") + snippet + ("..." if end < len(text) else ""))
    return snippets


@router.get("/search", response_model=PaginatedResponse[TranscriptionSearchHit])
async def search_transcriptions(
    query: str = Query(..., min_length=1),
    params: PaginationParams = Depends(get_pagination),
    repo: TenantRepository = Depends(get_tenant),
):
    """Case-insensitive substring search over the organization's transcripts"""
    search = repo.transcriptions(func.lower(Transcription.text).contains(query.lower(), autoescape=True))
    total = await repo.total(search)
    transcriptions = await repo.all(
        search.options(selectinload(Transcription.recording))
        .order_by(Transcription.created_at.desc())
        .offset(params.offset)
        .limit(params.limit)
    )

    hits = []
    for transcription in transcriptions:
        hits.append(TranscriptionSearchHit(
            id=transcription.id,
            recording_id=transcription.recording_id,
            recording=SearchRecording.model_validate(transcription.recording),
            snippets=highlight_snippets(transcription.text, query),
            match_count=len(re.findall(re.escape(query), transcription.text, re.IGNORECASE)),
            confidence=transcription.confidence,
            language=transcription.language,
        ))
    return PaginatedResponse(data=hits, pagination=params.pagination(total))
