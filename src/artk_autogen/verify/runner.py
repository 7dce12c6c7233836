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

"""Run generated tests through the external execution host.

The host is a subprocess started from the policy's command template. It must
accept a marker filter and write a JUnit XML report; anything else it prints is
kept only for diagnostics.
"""

import subprocess
import sys
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Protocol

from artk_autogen.codegen.render import pytest_marker
from artk_autogen.core.config import Config
from artk_autogen.core.errors import ConfigError
from artk_autogen.core.logger import get_logger
from artk_autogen.core.policy import Policy
from artk_autogen.verify.report import VerificationResult, build_result, environment_failure, parse_junit

logger = get_logger(__name__)

REPORT_NAME = "junit.xml"


class ExecutionHost(Protocol):
    def run(self, journey_id: str, test_file: Path) -> VerificationResult:
        ...


class PytestHost:
    """Execute a journey's test with the configured command and parse its report."""

    def __init__(self, cfg: Config, policy: Policy):
        self.cfg = cfg
        self.policy = policy

    def report_path(self, journey_id: str) -> Path:
        return self.cfg.journey_reports_dir(journey_id) / REPORT_NAME

    def command(self, journey_id: str, test_file: Path) -> List[str]:
        values = {
            "python": sys.executable,
            "tests_dir": str(self.cfg.tests_dir),
            "test_file": str(test_file),
            "marker": pytest_marker(journey_id),
            "harness_dir": str(self.cfg.harness_dir),
            "report": str(self.report_path(journey_id)),
        }
        try:
            return [part.format(**values) for part in self.policy.execution.command]
        except (KeyError, IndexError) as e:
            raise ConfigError(f"Unknown placeholder {e} in execution command") from e

    def run(self, journey_id: str, test_file: Path) -> VerificationResult:
        report = self.report_path(journey_id)
        report.parent.mkdir(parents=True, exist_ok=True)
        if report.exists():
            report.unlink()

        cmd = self.command(journey_id, test_file)
        timeout = self.policy.execution.timeout_seconds
        logger.info(f"{journey_id}: running {' '.join(cmd)}")
        start = time.time()
        try:
            completed = subprocess.run(
                cmd,
                cwd=self.cfg.harness_dir if self.cfg.harness_dir.exists() else None,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout,
            )
        except FileNotFoundError:
            return environment_failure(journey_id, journey_id, f"Execution host not found: {cmd[0]}")
        except subprocess.TimeoutExpired:
            logger.warning(f"{journey_id}: execution host timed out after {timeout}s")
            return environment_failure(journey_id, journey_id, f"Execution host timed out after {timeout}s")

        elapsed = time.time() - start
        logger.debug(f"{journey_id}: host exited {completed.returncode} after {elapsed:.1f}s")
        if not report.exists():
            tail = "\n".join((completed.stderr or completed.stdout or "").strip().splitlines()[-10:])
            return environment_failure(
                journey_id,
                journey_id,
                f"Execution host exited {completed.returncode} without a report.\n{tail}".strip(),
            )
        try:
            scenarios = parse_junit(report, test_file.name)
        except ET.ParseError as e:
            return environment_failure(journey_id, journey_id, f"Unreadable report {report}: {e}")
        if not scenarios:
            return environment_failure(journey_id, journey_id, f"No tests matched marker {pytest_marker(journey_id)!r}")
        return build_result(journey_id, scenarios)
