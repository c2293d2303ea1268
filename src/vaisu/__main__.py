"""
`python -m vaisu` starts the API server with the configured settings.

For other modes use the `vaisu` command (`dev`, `start`, `prod`).
"""

import uvicorn

from vaisu.core.config import settings


def main():
    uvicorn.run(
        "vaisu.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()
