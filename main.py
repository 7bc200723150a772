"""Main entry point for running the FastAPI application."""
import uvicorn

from intake.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    print(f"Starting {settings.app_name} v{settings.version}")
    print(f"Debug mode: {settings.debug}")
    print(f"Database: {settings.db.url.split('@')[-1] if '@' in settings.db.url else settings.db.url}")
    print(f"Upload mode: {settings.uploads.mode.value}")
    print(f"Auto-reload: {'Enabled' if settings.debug else 'Disabled'}")
    print("-" * 50)

    uvicorn.run(
        "intake.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["intake"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )
