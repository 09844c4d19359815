import logging
from fastapi import APIRouter, Depends, HTTPException, Request, File, UploadFile, status
from typing import Any, Dict

from ..models.db_models import User
from ..tools.emotion_predictor import predict_emotion, EmotionServiceError
from ..services.errors import InvalidRequestError
from .auth import get_current_user
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/emotion", tags=["Emotion"])


@router.post("/predict", summary="Forward a camera frame to the emotion service")
@limiter.limit("120/minute")
async def predict(
    request: Request,
    frame: UploadFile = File(...),
    user: User = Depends(get_current_user)
) -> Dict[str, Any]:
    """
    Tek bir kareyi `multipart/form-data` olarak alır ve harici duygu servisinin cevabını döndürür.
    Sonuç kaydedilmez; istemci etiketi olay olarak `/sessions/{id}/events` ile gönderir.
    """
    image_bytes = await frame.read()
    if not image_bytes:
        raise InvalidRequestError("Uploaded frame is empty.")
    try:
        return await predict_emotion(image_bytes)
    except EmotionServiceError as e:
        logger.warning(f"Emotion prediction failed for user '{user.user_id}': {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
