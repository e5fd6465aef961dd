"""
External provider handles, built once at startup
"""
import logging
from dataclasses import dataclass

from fieldlink.core.config import Settings
from fieldlink.services.analysis import KeywordAnalyzer, OpenAIAnalyzer
from fieldlink.services.speech import GoogleSpeechProvider, SpeechProvider, UnavailableSpeechProvider
from fieldlink.services.storage import ObjectStorage, S3Storage, UnavailableStorage

logger = logging.getLogger(__name__)


@dataclass
class Providers:
    storage: ObjectStorage
    speech: SpeechProvider
    analyzer: KeywordAnalyzer


def build_providers(settings: Settings) -> Providers:
    if settings.storage_configured:
        storage = S3Storage(
            bucket=settings.AWS_S3_BUCKET,
            region=settings.AWS_REGION,
            access_key=settings.AWS_ACCESS_KEY_ID,
            secret_key=settings.AWS_SECRET_ACCESS_KEY,
            endpoint=settings.AWS_S3_ENDPOINT,
        )
        logger.info("S3 storage configured", extra={"bucket": settings.AWS_S3_BUCKET})
    else:
        storage = UnavailableStorage()
        logger.warning("AWS credentials not configured - uploads are disabled")

    if settings.speech_configured:
        speech = GoogleSpeechProvider()
        logger.info("Google Cloud Speech-to-Text configured")
    else:
        speech = UnavailableSpeechProvider()
        logger.warning("Google Cloud credentials not configured - using mock transcriptions")

    if settings.OPENAI_API_KEY:
        analyzer = OpenAIAnalyzer(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            base_url=settings.OPENAI_BASE_URL,
        )
    else:
        analyzer = KeywordAnalyzer()
        logger.warning("OpenAI API key not configured - using keyword analysis")

    return Providers(storage=storage, speech=speech, analyzer=analyzer)
