from fastapi import APIRouter, Request
from api.dependencies.rate_limits import get_limiter
from infrastructure.services import NotificationServiceDep, SettingsDep

router = APIRouter(tags=["System"])
limiter = get_limiter()


# Load balancer health checks hit these every few seconds, so the limit is generous
@router.get("/version")
@limiter.limit("50/minute")
def get_version(request: Request, settings: SettingsDep):  # pylint: disable=unused-argument
    """Get the version of the application."""
    return {"version": settings.GIT_SHA}


@router.get("/health")
@limiter.limit("50/minute")
def get_health(request: Request):  # pylint: disable=unused-argument
    """Healthcheck endpoint."""
    return {"status": "ok"}


@router.get("/health/channels")
@limiter.limit("10/minute")
def get_channel_health(
    request: Request, service: NotificationServiceDep
):  # pylint: disable=unused-argument
    """Provider health per configured delivery channel."""
    channels = service.health_check()
    return {
        "status": "ok" if all(channels.values()) else "degraded",
        "channels": channels,
    }
