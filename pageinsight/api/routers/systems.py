from fastapi import APIRouter


def create_systems_router(settings: dict, version: str = "1.0.0"):
    """Create systems router exposing liveness and the effective settings."""
    router = APIRouter(prefix="/systems", tags=["System"])

    @router.get("/health")
    def health():
        return {"status": "ok", "version": version}

    @router.get("/config")
    def get_config():
        """Return current environment configuration values."""
        return {
            "environment": {
                key: ",".join(value) if isinstance(value, (list, tuple)) else str(value)
                for key, value in settings.items()
                if value is not None
            }
        }

    return router
