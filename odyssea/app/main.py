"""Odyssea - application bootstrap.

Loads configuration, installs logging and builds the ``Store`` a view
layer drives. ``python -m odyssea.app.main`` starts a headless session,
restores the cached state and reports what it found.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from odyssea.app.state.store import Store
from odyssea.shared.core.configuration import ValidationLevel, load_config
from odyssea.shared.core.logging_setup import configure_logging

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path.cwd()


def bootstrap(
    project_root: Optional[Path] = None,
    validation_level: ValidationLevel = ValidationLevel.STRICT,
) -> Store:
    """Build a ready-to-start ``Store`` for ``project_root``.

    Relative log and cache paths are resolved against the project root.
    """
    root = Path(project_root or PROJECT_ROOT).resolve()
    config = load_config(root, validation_level)

    log_file = config.logging.file
    if log_file and not Path(log_file).is_absolute():
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update={"file": str(root / log_file)})}
        )
    configure_logging(config.logging)

    return Store.from_config(config, project_root=root)


async def main() -> None:
    store = bootstrap()
    store.start()
    try:
        await store.wait_until_idle()
        logger.info(
            f"Session status: {store.auth.status.value}, "
            f"{len(store.trips.trips)} cached trip(s), theme {store.theme.mode}"
        )
    finally:
        await store.aclose()


if __name__ == "__main__":
    asyncio.run(main())
