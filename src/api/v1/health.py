from typing import Annotated

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from schemas.api import ApiResponse, HealthStatus


router = APIRouter()


@router.get("/health", response_model=ApiResponse[HealthStatus])
def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[HealthStatus]:
    """Liveness check; also reports whether generation can reach upstream."""
    return ApiResponse(
        data=HealthStatus(
            message=f"{settings.APP_NAME} relay is running",
            upstream_configured=settings.upstream_configured,
        ),
        message="Health check successful",
    )
