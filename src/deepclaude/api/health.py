from fastapi import APIRouter

from deepclaude.core.config import get_settings
from deepclaude.schemas.api import ApiResponse


router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict[str, str]])
def health_check() -> ApiResponse[dict[str, str]]:
    """Liveness probe; reports the configured models without calling them."""
    settings = get_settings()
    return ApiResponse(
        data={
            "status": "healthy",
            "message": f"{settings.APP_NAME} API is running",
            "reasoner": settings.REASONER_MODEL_NAME,
            "answerer": settings.ANSWERER_MODEL_NAME,
        },
        message="Health check successful",
    )
