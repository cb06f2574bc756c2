from fastapi import APIRouter


router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint"""
    from deepview.providers.registry import provider_registry

    return {
        "status": "healthy",
        "gateway": provider_registry.gateway is not None,
        "providers": provider_registry.get_provider_names(),
        "video_cooldown_seconds": provider_registry.video_breaker.seconds_remaining(),
    }
