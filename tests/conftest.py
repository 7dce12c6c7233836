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

"""Shared fixtures: a throwaway ARTK project and a scripted execution host."""

import json
from pathlib import Path
from typing import Optional, Tuple

import pytest

from artk_autogen.core.config import Config
from artk_autogen.core.policy import build_policy
from artk_autogen.pipeline import AutoGenPipeline
from artk_autogen.selectors.catalog import SelectorCatalog
from artk_autogen.verify.report import ScenarioResult, VerificationResult, build_result

CHECKOUT_JOURNEY = '''---
id: JRN-0001
title: Shopper places an order
status: clarified
tier: smoke
scope: checkout
actor: shopper
---

## Acceptance Criteria

### AC-1: Shopper can submit the order form
- Navigate to "/checkout"
- Enter "Jane" in the Name field
- Click the Submit button

### AC-2: Confirmation is shown
- User should see the "Order placed" heading
'''

# Same journey, but the Submit button is pinned to a css selector.
CSS_JOURNEY = CHECKOUT_JOURNEY.replace(
    "- Click the Submit button\n", '- Click the Submit button (css=".btn-submit")\n'
)

CATALOG = {"testIds": ["submit-button"], "entries": {}}


def write_journey(cfg: Config, text: str, name: Optional[str] = None) -> Path:
    journey_id = text.split("id: ", 1)[1].split("\n", 1)[0].strip()
    path = cfg.journeys_dir / (name or f"{journey_id}.md")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def step_line(test_file: Path, step_index: int) -> int:
    """Line number of the statement generated for ``step_index``."""
    marker = f"# [{step_index}] "
    for number, line in enumerate(test_file.read_text(encoding="utf-8").split("\n"), start=1):
        if line.strip().startswith(marker):
            return number + 1
    raise AssertionError(f"step {step_index} not found in {test_file}")


class FakeHost:
    """Execution host returning scripted outcomes in order; the last one repeats.

    Each outcome is ``None`` (pass) or ``(signature, step_index)`` for a failure
    raised by that step's statement.
    """

    def __init__(self, *outcomes: Optional[Tuple[str, int]]):
        self.outcomes = list(outcomes) or [None]
        self.calls = 0

    def run(self, journey_id: str, test_file: Path) -> VerificationResult:
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        name = f"{test_file.stem}::{test_file.stem}"
        if outcome is None:
            return build_result(journey_id, [ScenarioResult(name=name, status="passed")])
        signature, step_index = outcome
        line = step_line(test_file, step_index)
        traceback = f"{signature}\n\n{test_file.name}:{line}: Error"
        return build_result(
            journey_id,
            [ScenarioResult(name=name, status="failed", signature=traceback, line=line)],
        )


@pytest.fixture
def cfg(tmp_path):
    """An isolated project: .artk/, journeys/ and e2e/ under tmp_path."""
    config = Config(tmp_path)
    config.artk_dir.mkdir()
    config.journeys_dir.mkdir()
    return config


@pytest.fixture
def policy():
    return build_policy()


@pytest.fixture
def catalog():
    return SelectorCatalog.from_dict(CATALOG)


@pytest.fixture
def make_pipeline(cfg, policy, catalog):
    def factory(host=None, pipeline_policy=None):
        return AutoGenPipeline(cfg, pipeline_policy or policy, catalog, host or FakeHost())
    return factory


@pytest.fixture
def checkout(cfg):
    write_journey(cfg, CHECKOUT_JOURNEY)
    return "JRN-0001"


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))
