"""Quick script to run the FastAPI backend."""
import uvicorn
from config.settings import settings
from config.logger import install_crash_handlers

if __name__ == "__main__":
    install_crash_handlers()
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=not settings.is_production,
    )
