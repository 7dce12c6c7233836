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

"""Index of feature modules, the functions they export and who uses them."""

import json
from pathlib import Path
from typing import Any, Dict, List

from artk_autogen.core.errors import GenerationError
from artk_autogen.core.locks import file_lock
from artk_autogen.core.logger import get_logger

logger = get_logger(__name__)

REGISTRY_VERSION = 1


def render_registry(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True) + "\n"


class ModuleRegistry:
    def __init__(self, path: Path, harness_dir: Path):
        self.path = path
        self.harness_dir = harness_dir

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": REGISTRY_VERSION, "modules": {}}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise GenerationError(self.path, f"registry is not valid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("modules"), dict):
            raise GenerationError(self.path, "registry has no 'modules' mapping")
        return data

    def journeys_using(self, module: str) -> List[str]:
        return list(self.load()["modules"].get(module, {}).get("journeys", []))

    def record(self, journey_id: str, functions: Dict[str, Dict[str, bool]], paths: Dict[str, Path]) -> bool:
        """Register ``journey_id`` against each module it uses.

        Returns True when the registry file changed.
        """
        with file_lock(self.path):
            data = self.load()
            modules = data["modules"]
            for name, entry in modules.items():
                if name not in functions and journey_id in entry.get("journeys", []):
                    entry["journeys"] = [j for j in entry["journeys"] if j != journey_id]
            for name, defined in functions.items():
                entry = modules.setdefault(name, {})
                try:
                    entry["file"] = paths[name].relative_to(self.harness_dir).as_posix()
                except ValueError:
                    entry["file"] = str(paths[name])
                entry["functions"] = {fn: {"async": is_async} for fn, is_async in defined.items()}
                entry["journeys"] = sorted(set(entry.get("journeys", [])) | {journey_id})
            data["version"] = REGISTRY_VERSION

            text = render_registry(data)
            if self.path.exists() and self.path.read_text(encoding="utf-8") == text:
                return False
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(text, encoding="utf-8")
            logger.debug(f"Updated module registry for {journey_id}")
            return True
