from __future__ import annotations

import logging

from posbill.application.container import build_container
from posbill.config import get_app_paths, load_settings
from posbill.logging_config import setup_logging
from posbill.ui.app import App


def main() -> None:
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    settings = load_settings()
    container = build_container(settings)

    app = App(
        container,
        logs_dir=str(paths.logs_dir),
        documents_dir=str(paths.base_dir / "documents"),
    )
    app.mainloop()


if __name__ == "__main__":
    main()
