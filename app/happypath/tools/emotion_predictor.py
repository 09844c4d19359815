import logging
from typing import Any, Dict

import httpx

# Gerekli ayarları import edelim
from ..config.config import settings

logger = logging.getLogger(__name__)


class EmotionServiceError(Exception):
    """Harici duygu tahmin servisine yapılan istek sırasında oluşan hatalar için özel exception."""
    pass


async def predict_emotion(image_bytes: bytes, timeout: float = 15.0) -> Dict[str, Any]:
    """
    Tek bir kareyi harici duygu tahmin servisine iletir ve servisin JSON cevabını aynen döndürür.

    Model bu uygulamanın parçası değildir; servis adresi EMOTION_SERVICE_URL ayarından okunur.
    """
    if not settings.EMOTION_SERVICE_URL:
        raise EmotionServiceError("EMOTION_SERVICE_URL is not configured.")
    if not image_bytes:
        raise EmotionServiceError("Empty frame.")

    async with httpx.AsyncClient(timeout=timeout) as client:
        try:
            response = await client.post(
                f"{settings.EMOTION_SERVICE_URL.rstrip('/')}/predict-emotion/",
                content=image_bytes,
                headers={"Content-Type": "application/octet-stream"},
            )
            response.raise_for_status()  # HTTP 4xx veya 5xx hatalarında exception fırlatır
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Emotion service returned {e.response.status_code}: {e.response.text}")
            raise EmotionServiceError(f"Emotion service error: {e.response.status_code}") from e
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Emotion service request failed: {e}", exc_info=True)
            raise EmotionServiceError("Emotion service is unavailable.") from e
