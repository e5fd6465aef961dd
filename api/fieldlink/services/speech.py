"""
Speech-to-text providers
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

# MIME type -> provider audio encoding
AUDIO_FORMAT_MAP = {
    "audio/mpeg": "MP3",
    "audio/mp3": "MP3",
    "audio/wav": "LINEAR16",
    "audio/wave": "LINEAR16",
    "audio/x-wav": "LINEAR16",
    "audio/mp4": "MP3",
    "audio/m4a": "MP3",
    "audio/ogg": "OGG_OPUS",
    "audio/opus": "OGG_OPUS",
    "audio/webm": "WEBM_OPUS",
    "audio/flac": "FLAC",
}
LINEAR16_SAMPLE_RATE = 16000


class SpeechProvider(Protocol):
    available: bool

    async def recognize(
        self, audio: bytes, encoding: str, language: str, speaker_count: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Return recognition results as plain dicts.

        Each result is ``{"alternatives": [{"transcript", "confidence",
        "words": [{"word", "start_time", "end_time", "confidence",
        "speaker_tag"}]}]}``.
        """
        ...


class GoogleSpeechProvider:
    """Google Cloud Speech-to-Text (synchronous recognize)."""

    available = True

    def __init__(self, model: str = "latest_long"):
        from google.cloud import speech

        self._speech = speech
        self.model = model
        self.client = speech.SpeechAsyncClient()

    def _config(self, encoding: str, language: str, speaker_count: Optional[int]):
        speech = self._speech
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding[encoding],
            language_code=language,
            enable_automatic_punctuation=True,
            enable_word_time_offsets=True,
            model=self.model,
        )
        if encoding == "LINEAR16":
            config.sample_rate_hertz = LINEAR16_SAMPLE_RATE
        if speaker_count and speaker_count > 1:
            config.diarization_config = speech.SpeakerDiarizationConfig(
                enable_speaker_diarization=True,
                min_speaker_count=2,
                max_speaker_count=speaker_count,
            )
        return config

    async def recognize(
        self, audio: bytes, encoding: str, language: str, speaker_count: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        response = await self.client.recognize(
            config=self._config(encoding, language, speaker_count),
            audio=self._speech.RecognitionAudio(content=audio),
        )
        payload = type(response).to_dict(response)
        return payload.get("results", [])


class UnavailableSpeechProvider:
    """No credentials configured; the engine generates mock transcripts."""

    available = False

    async def recognize(
        self, audio: bytes, encoding: str, language: str, speaker_count: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        raise RuntimeError("Speech provider is not configured")
