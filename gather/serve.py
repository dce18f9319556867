"""Run the API under uvicorn."""
import sys

import uvicorn

from gather.core.config import settings


def main() -> None:
    print(f"[gather] Starting on http://{settings.HOST}:{settings.PORT}")
    try:
        uvicorn.run(
            "gather.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[gather] Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
