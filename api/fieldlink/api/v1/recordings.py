"""
Recording endpoints
"""
import logging
import os
import uuid
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy import func
from sqlalchemy.orm import selectinload

from fieldlink.core.config import settings
from fieldlink.core.database import AsyncSessionLocal, as_utc, utcnow
from fieldlink.core.dependencies import get_current_user, get_pagination, get_providers, get_tenant
from fieldlink.core.errors import NotFoundError, ValidationError
from fieldlink.core.tenancy import TenantRepository, parse_uuid, sort_clause
from fieldlink.models.recording import Recording, RecordingStatus, can_transition
from fieldlink.models.transcription import Transcription
from fieldlink.models.user import User
from fieldlink.schemas.analysis import AnalysisResponse
from fieldlink.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, PaginationParams
from fieldlink.schemas.recording import (
    PlaybackUrl,
    RecordingCreate,
    RecordingDetail,
    RecordingResponse,
    RecordingStats,
    RecordingUpdate,
)
from fieldlink.schemas.transcription import (
    TranscribeRequest,
    TranscriptionResponse,
    TranscriptionResult,
    TranscriptionUpsert,
)
from fieldlink.services.analysis import analyze_recording
from fieldlink.services.providers import Providers
from fieldlink.services.storage import PRESIGN_EXPIRY_SECONDS, validate_file_size, validate_file_type
from fieldlink.services.transcription import TranscriptionEngine

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_COLUMNS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
    "duration": "duration",
    "fileSize": "file_size",
    "status": "status",
}


async def audio_upload(file: UploadFile = File(...)) -> UploadFile:
    """Reject non-audio parts and oversized uploads before the body is read"""
    validate_file_type(file.content_type)
    if file.size is not None:
        validate_file_size(file.size, settings.MAX_UPLOAD_BYTES)
    return file


async def transcribe_uploaded(providers: Providers, organization_id: uuid.UUID, recording_id: uuid.UUID,
                              key: str, mime_type: str) -> None:
    """Background transcription after an upload; runs in its own session"""
    async with AsyncSessionLocal() as db:
        engine = TranscriptionEngine(TenantRepository(db, organization_id), providers.speech)
        try:
            await engine.transcribe_from_storage(providers.storage, key, mime_type, recording_id)
        except Exception:
            # Nobody is waiting on the response; the engine already marked the recording
            logger.exception("Background transcription failed", extra={"recording_id": str(recording_id)})


@router.post("/upload", response_model=ApiResponse[RecordingResponse], status_code=status.HTTP_201_CREATED)
async def upload_recording(
    background_tasks: BackgroundTasks,
    file: UploadFile = Depends(audio_upload),
    title: Optional[str] = Form(None, max_length=200),
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
    providers: Providers = Depends(get_providers),
):
    """Store an audio file and queue its transcription"""
    data = await file.read()
    if not data:
        raise ValidationError("No file uploaded")
    validate_file_size(len(data), settings.MAX_UPLOAD_BYTES)

    stored = await providers.storage.put(data, str(repo.organization_id), file.filename, file.content_type)

    recording = Recording(
        organization_id=repo.organization_id,
        user_id=current_user.id,
        title=title or os.path.splitext(file.filename or "")[0] or "Untitled recording",
        file_size=len(data),
        file_url=stored.url,
        storage_key=stored.key,
        mime_type=file.content_type,
        status=RecordingStatus.UPLOADED,
    )
    recording.user = current_user
    repo.db.add(recording)
    await repo.db.commit()
    logger.info("Recording uploaded", extra={"recording_id": str(recording.id), "size": len(data)})

    if settings.AUTO_TRANSCRIBE:
        background_tasks.add_task(
            transcribe_uploaded, providers, repo.organization_id, recording.id, stored.key, file.content_type
        )

    return ApiResponse(data=RecordingResponse.model_validate(recording), message="Recording uploaded successfully")


@router.get("/stats", response_model=ApiResponse[RecordingStats])
async def get_recording_stats(repo: TenantRepository = Depends(get_tenant)):
    """Organization-wide totals plus per-day counts for the last 30 days"""
    total = await repo.count(Recording)
    total_storage = await repo.scalar(Recording, func.coalesce(func.sum(Recording.file_size), 0))
    total_duration = await repo.scalar(Recording, func.coalesce(func.sum(Recording.duration), 0))

    result = await repo.db.execute(
        repo.select(Recording).with_only_columns(Recording.status, func.count(Recording.id)).group_by(Recording.status)
    )
    by_status = {row[0].value: row[1] for row in result.all()}

    recent = await repo.all(repo.recordings_since(utcnow() - timedelta(days=30)))
    per_day = Counter(as_utc(r.created_at).date().isoformat() for r in recent)

    return ApiResponse(
        data=RecordingStats(
            total_recordings=total,
            by_status=by_status,
            total_storage=int(total_storage or 0),
            total_duration=int(total_duration or 0),
            average_duration=round(int(total_duration or 0) / total, 2) if total else 0.0,
            by_date=[{"date": day, "count": per_day[day]} for day in sorted(per_day)],
        )
    )


@router.get("/date-range", response_model=PaginatedResponse[RecordingResponse])
async def get_recordings_by_date_range(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    params: PaginationParams = Depends(get_pagination),
    repo: TenantRepository = Depends(get_tenant),
):
    """Recordings created between two dates, both inclusive"""
    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate")
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)

    query = repo.select(Recording, Recording.created_at >= start, Recording.created_at <= end)
    total = await repo.total(query)
    recordings = await repo.all(
        query.options(selectinload(Recording.user))
        .order_by(sort_clause(Recording, params.sort_by, params.order, SORT_COLUMNS))
        .offset(params.offset)
        .limit(params.limit)
    )
    return PaginatedResponse(
        data=[RecordingResponse.model_validate(r) for r in recordings],
        pagination=params.pagination(total),
    )


@router.get("", response_model=PaginatedResponse[RecordingResponse])
async def list_recordings(
    status_filter: Optional[RecordingStatus] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None, alias="userId"),
    params: PaginationParams = Depends(get_pagination),
    repo: TenantRepository = Depends(get_tenant),
):
    query = repo.select(Recording)
    if status_filter:
        query = query.where(Recording.status == status_filter)
    if user_id:
        query = query.where(Recording.user_id == parse_uuid(user_id))

    total = await repo.total(query)
    recordings = await repo.all(
        query.options(selectinload(Recording.user))
        .order_by(sort_clause(Recording, params.sort_by, params.order, SORT_COLUMNS))
        .offset(params.offset)
        .limit(params.limit)
    )
    return PaginatedResponse(
        data=[RecordingResponse.model_validate(r) for r in recordings],
        pagination=params.pagination(total),
    )


@router.post("", response_model=ApiResponse[RecordingResponse], status_code=status.HTTP_201_CREATED)
async def create_recording(
    data: RecordingCreate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    """Register a recording whose audio is already stored"""
    recording = Recording(
        organization_id=repo.organization_id,
        user_id=current_user.id,
        status=RecordingStatus.UPLOADED,
        **data.model_dump(),
    )
    recording.user = current_user
    repo.db.add(recording)
    await repo.db.commit()
    return ApiResponse(data=RecordingResponse.model_validate(recording), message="Recording created successfully")


@router.get("/{recording_id}", response_model=ApiResponse[RecordingDetail])
async def get_recording(recording_id: str, repo: TenantRepository = Depends(get_tenant)):
    recording = await repo.get_or_404(
        Recording,
        recording_id,
        selectinload(Recording.user),
        selectinload(Recording.transcription),
        selectinload(Recording.analysis_result),
    )
    return ApiResponse(data=RecordingDetail.model_validate(recording))


@router.patch("/{recording_id}", response_model=ApiResponse[RecordingResponse])
async def update_recording(
    recording_id: str,
    data: RecordingUpdate,
    repo: TenantRepository = Depends(get_tenant),
):
    recording = await repo.get_or_404(Recording, recording_id, selectinload(Recording.user))
    if data.status is not None and not can_transition(recording.status, data.status):
        raise ValidationError(f"Cannot change status from {recording.status.value} to {data.status.value}")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(recording, key, value)
    await repo.db.commit()
    return ApiResponse(data=RecordingResponse.model_validate(recording), message="Recording updated successfully")


@router.delete("/{recording_id}", response_model=MessageResponse)
async def delete_recording(
    recording_id: str,
    repo: TenantRepository = Depends(get_tenant),
    providers: Providers = Depends(get_providers),
):
    """Delete the recording, its transcript and analysis; the blob delete is best effort"""
    recording = await repo.get_or_404(
        Recording, recording_id, selectinload(Recording.transcription), selectinload(Recording.analysis_result)
    )
    if recording.storage_key:
        try:
            await providers.storage.delete(recording.storage_key)
        except Exception:
            logger.warning("Could not delete stored audio", extra={"key": recording.storage_key}, exc_info=True)

    await repo.db.delete(recording)
    await repo.db.commit()
    logger.info("Recording deleted", extra={"recording_id": recording_id})
    return MessageResponse(message="Recording deleted successfully")


@router.get("/{recording_id}/playback-url", response_model=ApiResponse[PlaybackUrl])
async def get_playback_url(
    recording_id: str,
    repo: TenantRepository = Depends(get_tenant),
    providers: Providers = Depends(get_providers),
):
    recording = await repo.get_or_404(Recording, recording_id)
    if not recording.storage_key:
        raise NotFoundError("Recording has no stored audio")
    url = await providers.storage.presign(recording.storage_key, PRESIGN_EXPIRY_SECONDS)
    return ApiResponse(data=PlaybackUrl(url=url, expires_in=PRESIGN_EXPIRY_SECONDS))


@router.get("/{recording_id}/transcription", response_model=ApiResponse[TranscriptionResponse])
async def get_transcription(recording_id: str, repo: TenantRepository = Depends(get_tenant)):
    recording = await repo.get_or_404(Recording, recording_id, selectinload(Recording.transcription))
    if recording.transcription is None:
        raise NotFoundError("Transcription not found")
    return ApiResponse(data=TranscriptionResponse.model_validate(recording.transcription))


@router.post("/{recording_id}/transcription", response_model=ApiResponse[TranscriptionResponse])
async def upsert_transcription(
    recording_id: str,
    data: TranscriptionUpsert,
    response: Response,
    repo: TenantRepository = Depends(get_tenant),
):
    """Store a transcript entered by hand; 201 when new, 200 when replaced"""
    recording = await repo.get_or_404(Recording, recording_id, selectinload(Recording.transcription))
    segments = [s.model_dump(by_alias=True) for s in data.speaker_segments]

    transcription = recording.transcription
    if transcription is None:
        transcription = Transcription(
            recording_id=recording.id,
            text=data.text,
            confidence=data.confidence,
            language=data.language,
            speaker_segments=segments,
        )
        repo.db.add(transcription)
        response.status_code = status.HTTP_201_CREATED
        message = "Transcription created successfully"
    else:
        transcription.text = data.text
        transcription.confidence = data.confidence
        transcription.language = data.language
        transcription.speaker_segments = segments
        message = "Transcription updated successfully"

    recording.status = RecordingStatus.COMPLETED
    await repo.db.commit()
    await repo.db.refresh(transcription)
    return ApiResponse(data=TranscriptionResponse.model_validate(transcription), message=message)


@router.post("/{recording_id}/transcribe", response_model=ApiResponse[TranscriptionResult])
async def transcribe_recording(
    recording_id: str,
    options: Optional[TranscribeRequest] = Body(None),
    repo: TenantRepository = Depends(get_tenant),
    providers: Providers = Depends(get_providers),
):
    """Run the transcription engine on the stored audio and wait for the result"""
    options = options or TranscribeRequest()
    recording = await repo.get_or_404(Recording, recording_id)
    if not recording.storage_key:
        raise ValidationError("Recording has no stored audio to transcribe")

    engine = TranscriptionEngine(repo, providers.speech)
    result = await engine.transcribe_from_storage(
        providers.storage,
        recording.storage_key,
        recording.mime_type,
        recording.id,
        language=options.language,
        speaker_count=options.speaker_count,
    )
    return ApiResponse(data=result, message="Transcription completed successfully")


@router.get("/{recording_id}/analysis", response_model=ApiResponse[AnalysisResponse])
async def get_analysis(recording_id: str, repo: TenantRepository = Depends(get_tenant)):
    recording = await repo.get_or_404(Recording, recording_id, selectinload(Recording.analysis_result))
    if recording.analysis_result is None:
        raise NotFoundError("Analysis not found")
    return ApiResponse(data=AnalysisResponse.model_validate(recording.analysis_result))


@router.post("/{recording_id}/analysis", response_model=ApiResponse[AnalysisResponse],
             status_code=status.HTTP_201_CREATED)
async def create_analysis(
    recording_id: str,
    repo: TenantRepository = Depends(get_tenant),
    providers: Providers = Depends(get_providers),
):
    """Analyze a transcribed recording, replacing any earlier analysis"""
    analysis = await analyze_recording(repo, providers.analyzer, recording_id)
    return ApiResponse(data=AnalysisResponse.model_validate(analysis), message="Analysis completed successfully")
