import os

import uvicorn

from gassafe.config import settings
from gassafe.logging_config import configure_logging


def main() -> None:
    """
    Entry point for the `gassafe` console script.

    HOST/PORT come from the environment (defaults 0.0.0.0:5000); DEBUG turns
    on autoreload for local work.
    """
    configure_logging()

    uvicorn.run(
        "gassafe.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 5000)),
        reload=settings.debug,
        log_config=None,  # handlers come from configure_logging()
        use_colors=False,
    )


if __name__ == "__main__":
    main()
