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

"""Tests for the pipeline entry points and concurrent runs."""

import asyncio
import json

import pytest

from artk_autogen.core.config import Config
from artk_autogen.core.errors import ConfigError, MappingError, ParseError
from artk_autogen.core.policy import build_policy
from artk_autogen.pipeline import AutoGenPipeline
from artk_autogen.selectors.debt import load_debt_report

from conftest import CHECKOUT_JOURNEY, CSS_JOURNEY, FakeHost, read_json, write_journey

SECOND_JOURNEY = CHECKOUT_JOURNEY.replace("JRN-0001", "JRN-0002").replace('"Jane"', '"Omar"')

UNMAPPABLE_JOURNEY = CHECKOUT_JOURNEY.replace("JRN-0001", "JRN-0003").replace(
    "- Click the Submit button", "- Ponder the meaning of life"
)


class TestFromConfig:
    def test_loads_policy_and_catalog(self, tmp_path):
        cfg = Config(tmp_path)
        cfg.artk_dir.mkdir()
        cfg.policy_file.write_text("healing:\n  max_attempts: 1\npaths:\n  journeys: specs/journeys\n")
        cfg.selectors_dir.mkdir()
        cfg.catalog_file.write_text(json.dumps({"testIds": ["submit-button"], "entries": {}}))

        pipeline = AutoGenPipeline.from_config(cfg, FakeHost())

        assert pipeline.policy.healing.max_attempts == 1
        assert cfg.journeys_dir == cfg.repo_root / "specs" / "journeys"
        assert pipeline.catalog.find_test_id("Submit", "button") == "submit-button"

    def test_invalid_catalog(self, tmp_path):
        cfg = Config(tmp_path)
        cfg.selectors_dir.mkdir(parents=True)
        cfg.catalog_file.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            AutoGenPipeline.from_config(cfg, FakeHost())


class TestStages:
    def test_generate_records_selector_debt(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        pipeline = make_pipeline()

        pipeline.generate("JRN-0001")
        pipeline.generate("JRN-0001")

        rows = load_debt_report(cfg.debt_file)
        assert len(rows) == 1
        assert rows[0]["selector"] == ".btn-submit"
        assert rows[0]["count"] == 2
        assert rows[0]["journeys"] == ["JRN-0001"]
        assert rows[0]["file"] == "journeys/JRN-0001.md"

    def test_role_locators_leave_no_debt(self, make_pipeline, checkout, cfg):
        make_pipeline().generate(checkout)
        assert not cfg.debt_file.exists()

    def test_validate_saves_results(self, make_pipeline, checkout, cfg):
        pipeline = make_pipeline()
        pipeline.generate(checkout)
        assert pipeline.validate(checkout).passed
        assert read_json(cfg.journey_reports_dir(checkout) / "validation-results.json")["journey_id"] == checkout

    def test_verify_runs_host(self, make_pipeline, checkout, cfg):
        host = FakeHost()
        pipeline = make_pipeline(host)
        pipeline.generate(checkout)

        result = pipeline.verify(checkout)

        assert result.passed
        assert host.calls == 1
        saved = read_json(cfg.journey_reports_dir(checkout) / "verification.json")
        assert saved["status"] == "passed"
        assert saved["blocked_by_validation"] is False

    def test_verify_is_blocked_by_validation_errors(self, make_pipeline, checkout, cfg):
        host = FakeHost()
        pipeline = make_pipeline(host)
        test_file = pipeline.generate(checkout).test_file
        source = test_file.read_text()
        test_file.write_text(source.replace(
            '    await page.goto("/checkout")\n',
            '    await page.goto("/checkout")\n    await page.wait_for_timeout(1000)\n',
        ))

        result = pipeline.verify(checkout, heal=True)

        assert result.blocked
        assert not result.passed
        assert host.calls == 0
        saved = read_json(cfg.journey_reports_dir(checkout) / "verification.json")
        assert saved["blocked_by_validation"] is True
        assert not (cfg.journey_reports_dir(checkout) / "heal-log.json").exists()

    def test_missing_journey(self, make_pipeline, cfg):
        with pytest.raises(ParseError, match="no journey file found"):
            make_pipeline().generate("JRN-0404")


class TestRunOne:
    def test_all_stages(self, make_pipeline, checkout):
        outcome = make_pipeline().run_one(checkout, verify=True)
        assert outcome.stages == ["generate", "validate", "verify"]
        assert outcome.passed

    def test_without_verify(self, make_pipeline, checkout):
        host = FakeHost()
        outcome = make_pipeline(host).run_one(checkout)
        assert outcome.stages == ["generate", "validate"]
        assert outcome.verification is None
        assert outcome.passed
        assert host.calls == 0

    def test_errors_are_captured(self, make_pipeline, cfg):
        write_journey(cfg, UNMAPPABLE_JOURNEY)
        outcome = make_pipeline().run_one("JRN-0003", verify=True)
        assert isinstance(outcome.error, MappingError)
        assert outcome.stages == []
        assert not outcome.passed
        assert not (cfg.tests_dir / "checkout" / "test_jrn_0003.py").exists()

    def test_validation_failure_skips_verify(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        host = FakeHost()
        pipeline = make_pipeline(host, build_policy({"strictness": "strict"}))

        outcome = pipeline.run_one("JRN-0001", verify=True)

        assert outcome.stages == ["generate", "validate"]
        assert not outcome.passed
        assert host.calls == 0


class TestRunMany:
    def test_shared_module_is_written_by_both(self, make_pipeline, checkout, cfg):
        write_journey(cfg, SECOND_JOURNEY)
        pipeline = make_pipeline()

        outcomes = asyncio.run(pipeline.run_many(["JRN-0001", "JRN-0002"], verify=True, concurrency=2))

        assert sorted(outcomes) == ["JRN-0001", "JRN-0002"]
        assert all(o.passed for o in outcomes.values())
        module = (cfg.modules_dir / "checkout.py").read_text()
        assert "# artk:begin JRN-0001/AC-1" in module
        assert "# artk:begin JRN-0002/AC-1" in module
        assert read_json(cfg.registry_file)["modules"]["checkout"]["journeys"] == ["JRN-0001", "JRN-0002"]

    def test_one_failure_does_not_stop_the_others(self, make_pipeline, checkout, cfg):
        write_journey(cfg, UNMAPPABLE_JOURNEY)
        pipeline = make_pipeline()

        outcomes = asyncio.run(pipeline.run_many(["JRN-0003", "JRN-0001"], concurrency=1))

        assert outcomes["JRN-0001"].passed
        assert isinstance(outcomes["JRN-0003"].error, MappingError)
