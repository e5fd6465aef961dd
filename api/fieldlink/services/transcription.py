"""
Transcription engine

Turns an audio buffer into a speaker-attributed transcript. Provider calls go
through a retry policy; when the provider is not configured, or still fails
after the retries, a synthetic transcript is generated instead so the
recording never stays stuck in TRANSCRIBING.
"""
import asyncio
import logging
import math
import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select

from fieldlink.core.errors import AppError, NotFoundError, ValidationError
from fieldlink.core.tenancy import TenantRepository
from fieldlink.models.recording import Recording, RecordingStatus
from fieldlink.models.transcription import Transcription
from fieldlink.schemas.transcription import SpeakerSegment, TranscriptionResult, WordInfo
from fieldlink.services.speech import AUDIO_FORMAT_MAP, SpeechProvider

logger = logging.getLogger(__name__)

MOCK_PHRASES = (
    "Hello, thank you for calling.",
    "How can I help you today?",
    "I understand your concern.",
    "Let me check that for you.",
    "Yes, I can assist with that.",
    "Can you provide more details?",
    "That sounds great.",
    "I will follow up on this.",
    "Is there anything else I can help with?",
    "Thank you for your time.",
)
MOCK_BYTES_PER_SECOND = 16000
MOCK_MIN_DURATION = 30.0
MOCK_MAX_DURATION = 600.0
MOCK_WORDS_PER_SECOND = 2.5
MOCK_CONFIDENCE = 0.5
MOCK_NOTE = "[Note: Mock transcription - speech provider not configured]"
FALLBACK_CONFIDENCE = 0.3
FALLBACK_NOTE = "[Note: This is a fallback transcription]"


@dataclass
class TranscriptionProgress:
    status: str  # started | processing | completed | failed
    progress: int
    message: str


ProgressCallback = Callable[[TranscriptionProgress], Any]


def supported_formats() -> List[str]:
    return list(AUDIO_FORMAT_MAP)


def is_supported_format(mime_type: Optional[str]) -> bool:
    return (mime_type or "").lower() in AUDIO_FORMAT_MAP


def _exponential_backoff(attempt: int) -> float:
    return float(2 ** attempt)


class RetryPolicy:
    """Re-invoke an argument-less coroutine factory until it succeeds.

    Waits ``backoff(attempt)`` seconds after each failed attempt except the
    last. Validation errors are not retried.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: Callable[[int], float] = _exponential_backoff,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.sleep = sleep

    async def run(self, call: Callable[[], Awaitable[Any]]) -> Any:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await call()
            except ValidationError:
                raise
            except Exception as exc:
                last_error = exc
                logger.warning("Attempt %d/%d failed: %s", attempt, self.max_attempts, exc)
                if attempt < self.max_attempts:
                    await self.sleep(self.backoff(attempt))
        raise AppError(
            f"Transcription failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error


def parse_offset(value: Any) -> float:
    """Seconds from a provider offset: {seconds, nanos}, "1.5s", timedelta or number."""
    if value is None:
        return 0.0
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.rstrip("s") or 0)
    if isinstance(value, dict):
        return int(value.get("seconds") or 0) + int(value.get("nanos") or 0) / 1e9
    raise ValueError(f"Unrecognized time offset: {value!r}")


def _segment(speaker_tag: Optional[int], words: List[WordInfo]) -> SpeakerSegment:
    return SpeakerSegment(
        speaker=f"Speaker {speaker_tag or 1}",
        text=" ".join(w.word for w in words),
        start_time=words[0].start_time,
        end_time=words[-1].end_time,
        confidence=sum(w.confidence for w in words) / len(words),
        words=words,
    )


def group_words_by_speaker(words: List[WordInfo]) -> List[SpeakerSegment]:
    """Contiguous runs of the same speaker tag become one segment."""
    segments: List[SpeakerSegment] = []
    current: List[WordInfo] = []
    for word in words:
        if current and word.speaker_tag != current[-1].speaker_tag:
            segments.append(_segment(current[-1].speaker_tag, current))
            current = []
        current.append(word)
    if current:
        segments.append(_segment(current[-1].speaker_tag, current))
    return segments


def segments_text(segments: List[SpeakerSegment]) -> str:
    return "\n\n".join(f"{s.speaker}: {s.text}" for s in segments)


@dataclass
class TranscriptDraft:
    text: str
    confidence: float
    language: str
    segments: List[SpeakerSegment]
    duration: float
    word_count: int
    speaker_count: int
    is_mock: bool = False


def reduce_results(results: List[Dict[str, Any]], language: str) -> TranscriptDraft:
    """Provider results -> words -> speaker segments.

    Overall confidence is the mean of each result's first-alternative
    confidence, not a word-level mean.
    """
    if not results:
        raise AppError("No transcription results returned from speech provider")

    words: List[WordInfo] = []
    confidences: List[float] = []
    for result in results:
        alternatives = result.get("alternatives") or []
        if not alternatives:
            continue
        alternative = alternatives[0]
        alt_confidence = float(alternative.get("confidence") or 0)
        confidences.append(alt_confidence)
        for raw in alternative.get("words") or []:
            words.append(
                WordInfo(
                    word=raw.get("word", ""),
                    start_time=parse_offset(raw.get("start_time", raw.get("startTime"))),
                    end_time=parse_offset(raw.get("end_time", raw.get("endTime"))),
                    confidence=float(raw.get("confidence") or alt_confidence),
                    speaker_tag=raw.get("speaker_tag", raw.get("speakerTag")) or None,
                )
            )

    segments = group_words_by_speaker(words)
    speakers = {w.speaker_tag for w in words if w.speaker_tag}
    return TranscriptDraft(
        text=segments_text(segments),
        confidence=sum(confidences) / len(confidences) if confidences else 0.0,
        language=language,
        segments=segments,
        duration=words[-1].end_time if words else 0.0,
        word_count=len(words),
        speaker_count=len(speakers) or 1,
    )


def mock_duration(audio_length: int) -> float:
    return min(max(audio_length / MOCK_BYTES_PER_SECOND, MOCK_MIN_DURATION), MOCK_MAX_DURATION)


def generate_mock_transcript(
    audio_length: int, language: str = "en-US", rng: Optional[random.Random] = None
) -> TranscriptDraft:
    """Synthetic two-speaker transcript sized from the audio byte length."""
    rng = rng or random.Random()
    duration = mock_duration(audio_length)
    target_words = math.floor(duration * MOCK_WORDS_PER_SECOND)

    timings = []  # (word, start, end, confidence, speaker)
    clock = 0.0
    speaker = 1
    while len(timings) < target_words:
        for word in rng.choice(MOCK_PHRASES).split(" "):
            word_duration = 0.3 + rng.random() * 0.3
            timings.append((word, clock, clock + word_duration, 0.85 + rng.random() * 0.1, speaker))
            clock += word_duration
        if rng.random() > 0.7:
            speaker = 2 if speaker == 1 else 1
        clock += 0.5 + rng.random() * 0.5

    # Stretch or squeeze the timeline onto the nominal duration
    scale = duration / clock if clock else 1.0
    words = [
        WordInfo(word=w, start_time=start * scale, end_time=end * scale, confidence=conf, speaker_tag=tag)
        for w, start, end, conf, tag in timings
    ]
    segments = group_words_by_speaker(words)
    return TranscriptDraft(
        text=f"{segments_text(segments)}\n\n{MOCK_NOTE}",
        confidence=MOCK_CONFIDENCE,
        language=language,
        segments=segments,
        duration=duration,
        word_count=len(words),
        speaker_count=2,
        is_mock=True,
    )


class TranscriptionEngine:
    """Runs transcription for recordings of one organization."""

    def __init__(
        self,
        repo: TenantRepository,
        speech: SpeechProvider,
        retry: Optional[RetryPolicy] = None,
        rng: Optional[random.Random] = None,
    ):
        self.repo = repo
        self.db = repo.db
        self.speech = speech
        self.retry = retry or RetryPolicy()
        self.rng = rng or random.Random()

    async def _recognize(self, audio: bytes, encoding: str, language: str, speaker_count: Optional[int]):
        results = await self.speech.recognize(audio, encoding, language, speaker_count)
        return reduce_results(results, language)

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str,
        recording_id,
        language: str = "en-US",
        speaker_count: Optional[int] = 2,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TranscriptionResult:
        def report(status: str, progress: int, message: str) -> None:
            if on_progress is not None:
                on_progress(TranscriptionProgress(status=status, progress=progress, message=message))

        recording = await self.repo.get(Recording, recording_id)
        if recording is None:
            raise NotFoundError("Recording not found")

        encoding = AUDIO_FORMAT_MAP.get((mime_type or "").lower())
        if encoding is None:
            raise ValidationError(
                f"Unsupported audio format: {mime_type}. Supported formats: {', '.join(supported_formats())}"
            )

        recording.status = RecordingStatus.TRANSCRIBING
        await self.db.commit()
        report("started", 10, "Starting transcription")

        try:
            if self.speech.available:
                report("processing", 40, "Sending audio to speech provider")
                draft = await self.retry.run(
                    lambda: self._recognize(audio, encoding, language, speaker_count)
                )
            else:
                logger.info("Speech provider not configured, generating mock transcript",
                            extra={"recording_id": str(recording_id)})
                draft = generate_mock_transcript(len(audio), language, self.rng)
        except Exception as exc:
            logger.error("Transcription failed, using fallback", extra={"recording_id": str(recording_id)},
                         exc_info=exc)
            report("failed", 0, f"Transcription failed: {exc}")
            try:
                draft = generate_mock_transcript(len(audio), language, self.rng)
                draft.confidence = FALLBACK_CONFIDENCE
                draft.text = f"{draft.text}\n\n{FALLBACK_NOTE}"
            except Exception as fallback_exc:
                recording.status = RecordingStatus.FAILED
                await self.db.commit()
                raise AppError(f"Transcription failed: {fallback_exc}") from exc

        report("processing", 90, "Saving transcription")
        transcription = await self._save(recording, draft)
        report("completed", 100, "Transcription completed")
        logger.info(
            "Transcription completed",
            extra={"recording_id": str(recording_id), "words": draft.word_count, "mock": draft.is_mock},
        )
        return TranscriptionResult(
            id=transcription.id,
            recording_id=recording.id,
            text=draft.text,
            confidence=draft.confidence,
            language=draft.language,
            speaker_segments=draft.segments,
            duration=draft.duration,
            word_count=draft.word_count,
            speaker_count=draft.speaker_count,
            created_at=transcription.created_at,
        )

    async def transcribe_from_storage(
        self,
        storage,
        key: str,
        mime_type: str,
        recording_id,
        language: str = "en-US",
        speaker_count: Optional[int] = 2,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TranscriptionResult:
        """Download the blob, then transcribe; progress is mapped into 30-100."""
        if on_progress is not None:
            on_progress(TranscriptionProgress(status="started", progress=10, message="Downloading audio"))
        audio, stored_type = await storage.get(key)

        def scaled(update: TranscriptionProgress) -> None:
            if on_progress is not None:
                on_progress(TranscriptionProgress(
                    status=update.status,
                    progress=int(30 + update.progress * 0.7),
                    message=update.message,
                ))

        return await self.transcribe(
            audio,
            mime_type or stored_type,
            recording_id,
            language=language,
            speaker_count=speaker_count,
            on_progress=scaled,
        )

    async def _save(self, recording: Recording, draft: TranscriptDraft) -> Transcription:
        result = await self.db.execute(
            select(Transcription).where(Transcription.recording_id == recording.id)
        )
        transcription = result.scalar_one_or_none()
        segments = [s.model_dump(by_alias=True) for s in draft.segments]
        if transcription:
            transcription.text = draft.text
            transcription.confidence = draft.confidence
            transcription.language = draft.language
            transcription.speaker_segments = segments
        else:
            transcription = Transcription(
                recording_id=recording.id,
                text=draft.text,
                confidence=draft.confidence,
                language=draft.language,
                speaker_segments=segments,
            )
            self.db.add(transcription)
        recording.status = RecordingStatus.COMPLETED
        if not recording.duration:
            recording.duration = int(round(draft.duration))
        await self.db.commit()
        await self.db.refresh(transcription)
        return transcription

    async def get_transcription(self, recording_id) -> Optional[TranscriptionResult]:
        recording = await self.repo.get(Recording, recording_id)
        if recording is None:
            return None
        result = await self.db.execute(
            select(Transcription).where(Transcription.recording_id == recording.id)
        )
        transcription = result.scalar_one_or_none()
        if transcription is None:
            return None
        return result_from_row(transcription)


def result_from_row(transcription: Transcription) -> TranscriptionResult:
    segments = [SpeakerSegment.model_validate(s) for s in transcription.speaker_segments or []]
    words = [w for s in segments for w in s.words]
    return TranscriptionResult(
        id=transcription.id,
        recording_id=transcription.recording_id,
        text=transcription.text,
        confidence=transcription.confidence,
        language=transcription.language,
        speaker_segments=segments,
        duration=words[-1].end_time if words else 0.0,
        word_count=len(words),
        speaker_count=len({s.speaker for s in segments}),
        created_at=transcription.created_at,
    )
