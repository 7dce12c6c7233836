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

"""Per-file exclusive locks for generated artifacts.

Two pipelines writing the same shared module file serialize on that file only.
Threads in one process share a ``threading.Lock`` per resolved path; separate
processes coordinate through ``fcntl.flock`` on a sidecar ``.lock`` file.
"""

import fcntl
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from artk_autogen.core.logger import get_logger

logger = get_logger(__name__)

_registry_guard = threading.Lock()
_thread_locks: Dict[Path, threading.Lock] = {}


def _thread_lock(path: Path) -> threading.Lock:
    with _registry_guard:
        lock = _thread_locks.get(path)
        if lock is None:
            lock = threading.Lock()
            _thread_locks[path] = lock
        return lock


def lock_path_for(path: Path) -> Path:
    return path.with_name(f".{path.name}.lock")


@contextmanager
def file_lock(path: Path) -> Iterator[Path]:
    """Hold an exclusive lock on ``path`` for the duration of one edit."""
    resolved = Path(path).resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with _thread_lock(resolved):
        sidecar = lock_path_for(resolved)
        with open(sidecar, "w") as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            logger.debug(f"Acquired lock on {resolved}")
            try:
                yield resolved
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)
                logger.debug(f"Released lock on {resolved}")
