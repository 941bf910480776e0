"""Application starter: ``python -m chatrelay``."""

import uvicorn

from chatrelay.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "chatrelay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
