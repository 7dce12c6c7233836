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

import json
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from artk_autogen.core.logger import get_logger

load_dotenv()

logger = get_logger(__name__)


class Config:
    """Filesystem layout of an ARTK project.

    All paths hang off ``repo_root`` so a test can point a ``Config`` at a
    temporary directory and get a fully isolated project.
    """

    def __init__(self, repo_root: Optional[Path] = None):
        self.repo_root = Path(repo_root).resolve() if repo_root else self._find_repo_root()

        self.artk_dir = self.repo_root / ".artk"
        self.policy_file = self.artk_dir / "autogen.yaml"
        self.selectors_dir = self.artk_dir / "selectors"
        self.catalog_file = self.selectors_dir / "catalog.json"
        self.autogen_dir = self.artk_dir / "autogen"
        self.reports_dir = self.autogen_dir / "reports"
        self.debt_file = self.autogen_dir / "selector-debt.json"
        self.logs_dir = self.artk_dir / "logs"

        self.journeys_dir = self.repo_root / "journeys"
        self.harness_dir = self.repo_root / "e2e"
        self.tests_dir = self.harness_dir / "tests"
        self.modules_dir = self.harness_dir / "modules"
        self.registry_file = self.modules_dir / "registry.json"

    def _find_repo_root(self) -> Path:
        """
        Find the repository root.
        Priority:
        1. ARTK_ROOT env var
        2. Upward traversal looking for an .artk directory
        3. Git
        4. Current directory
        """
        if os.getenv("ARTK_ROOT"):
            return Path(os.getenv("ARTK_ROOT")).resolve()

        cwd = Path.cwd().resolve()
        for parent in [cwd] + list(cwd.parents):
            if (parent / ".artk").is_dir():
                return parent

        try:
            root = subprocess.check_output(
                ["git", "rev-parse", "--show-toplevel"],
                stderr=subprocess.DEVNULL,
            ).decode().strip()
            if root:
                return Path(root).resolve()
        except (OSError, subprocess.CalledProcessError):
            pass

        return cwd

    def apply_path_overrides(self, overrides: Dict[str, str]) -> None:
        """Re-point directories from the policy ``paths`` section."""
        if "journeys" in overrides:
            self.journeys_dir = self.repo_root / overrides["journeys"]
        if "harness" in overrides:
            self.harness_dir = self.repo_root / overrides["harness"]
            self.tests_dir = self.harness_dir / "tests"
            self.modules_dir = self.harness_dir / "modules"
            self.registry_file = self.modules_dir / "registry.json"
        if "catalog" in overrides:
            self.catalog_file = self.repo_root / overrides["catalog"]

    def journey_reports_dir(self, journey_id: str) -> Path:
        return self.reports_dir / journey_id

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load a YAML file safely."""
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML from {path}: {e}")
            raise

    def save_json(self, path: Path, data: Any) -> None:
        """Save JSON atomically with stable key order."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(json.dumps(data, indent=2, sort_keys=True) + "\n")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to save content to {path}: {e}")
            if tmp_path.exists():
                tmp_path.unlink()
            raise


config = Config()
