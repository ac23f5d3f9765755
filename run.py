"""Run script for the estimate import service"""

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from estimate_import.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "estimate_import.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
