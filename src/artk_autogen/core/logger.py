# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Logging for the ``artk`` logger hierarchy.

Library code only asks for loggers. The CLI calls ``configure_logging`` once
per invocation: console records go to stderr through rich, so they never mix
with the tables and JSON a command prints on stdout, and when the project has
an ``.artk`` directory the same records are appended to
``.artk/logs/autogen.log``.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

ROOT = "artk"
PACKAGE = "artk_autogen"
LOG_FILE = "autogen.log"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# -v count -> (artk level, root level). Libraries stay at WARNING until -vvv.
LEVELS: Dict[int, Tuple[int, int]] = {
    0: (logging.WARNING, logging.WARNING),
    1: (logging.INFO, logging.WARNING),
    2: (logging.DEBUG, logging.WARNING),
    3: (logging.DEBUG, logging.DEBUG),
}

# Handlers this module installed, so a second call replaces instead of stacking.
_installed: Dict[str, Tuple[logging.Logger, logging.Handler]] = {}


def levels_for(verbosity: int) -> Tuple[int, int]:
    """Levels for a ``-v`` count; ``ARTK_LOG_LEVEL`` applies when no -v is given."""
    artk_level, root_level = LEVELS[min(max(verbosity, 0), max(LEVELS))]
    override = os.getenv("ARTK_LOG_LEVEL")
    if verbosity == 0 and override:
        level = logging.getLevelName(override.strip().upper())
        if isinstance(level, int):
            artk_level = level
    return artk_level, root_level


def _install(key: str, target: logging.Logger, handler: Optional[logging.Handler]) -> None:
    previous = _installed.pop(key, None)
    if previous is not None:
        owner, old = previous
        owner.removeHandler(old)
        old.close()
    if handler is not None:
        target.addHandler(handler)
        _installed[key] = (target, handler)


def configure_logging(verbosity: int = 0, logs_dir: Optional[Path] = None) -> None:
    """Set levels and handlers for one CLI invocation.

    Args:
        verbosity: Number of ``-v`` flags.
        logs_dir: Where ``autogen.log`` goes. Defaults to the project's
            ``.artk/logs`` when the project has an ``.artk`` directory;
            otherwise there is no file log.
    """
    artk_level, root_level = levels_for(verbosity)
    root = logging.getLogger()
    root.setLevel(root_level)
    logging.getLogger(ROOT).setLevel(artk_level)

    console = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=verbosity >= 2,
    )
    console.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    _install("console", root, console)

    if logs_dir is None:
        from artk_autogen.core.config import config

        logs_dir = config.logs_dir if config.artk_dir.exists() else None
    file_handler = None
    if logs_dir is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(logs_dir / LOG_FILE, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    _install("file", logging.getLogger(ROOT), file_handler)


def get_logger(name: str) -> logging.Logger:
    """Logger under ``artk``; a module ``__name__`` loses its package prefix.

    ``get_logger("artk_autogen.heal.loop")`` and ``get_logger("heal.loop")``
    are the same ``artk.heal.loop`` logger.
    """
    if name == PACKAGE or name.startswith(f"{PACKAGE}."):
        name = name[len(PACKAGE):].lstrip(".")
    return logging.getLogger(f"{ROOT}.{name}" if name else ROOT)
