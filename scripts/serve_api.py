"""
Serve the admin API
"""

import os
import sys

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

import uvicorn

from core.config import settings


def main():
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
