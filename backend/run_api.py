"""Run the DanceHub API locally with auto-reload.

Same as ``dancehub serve --reload``, but works from a source checkout
without installing the package.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"


def main() -> None:
    if str(SRC_DIR) not in sys.path:
        sys.path.insert(0, str(SRC_DIR))

    import uvicorn

    from dancehub.api.app import default_base_path
    from dancehub.api.settings import Settings

    settings = Settings.from_env(default_base_path())
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "dancehub.api:create_app",
        factory=True,
        host="127.0.0.1",
        port=settings.port,
        reload=True,
        reload_dirs=[str(SRC_DIR)],
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
