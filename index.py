"""
Uvicorn Startup Script
----------------------
FastAPI application startup script.
"""

import uvicorn
from app.core.config_manager import settings


if __name__ == "__main__":
    # Bind to all interfaces; startup logs show localhost URLs
    uvicorn.run(
        app="app.main:app",
        host=settings.fastapi_host,
        port=settings.fastapi_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        # Keep the loguru routing installed by app.core.logger_setup
        log_config=None,
    )
