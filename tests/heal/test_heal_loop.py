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

"""Tests for healing fixes and the bounded healing loop."""

from artk_autogen.core.policy import build_policy
from artk_autogen.heal.fixes import (
    add_exact,
    await_async_call,
    insert_navigation_wait,
    namespace_data,
    upgrade_locator,
)
from artk_autogen.ir.types import IRPrimitive, LocatorStrategy, ValueKind

from conftest import CHECKOUT_JOURNEY, CSS_JOURNEY, FakeHost, read_json, write_journey

STRICT_MODE = 'Error: strict mode violation: locator(".btn-submit") resolved to 2 elements'

LOGIN_JOURNEY = CHECKOUT_JOURNEY.replace(
    '- Navigate to "/checkout"\n', '- Log in as "admin"\n- Navigate to "/checkout"\n'
)


def heal_log(cfg, journey_id="JRN-0001"):
    return read_json(cfg.journey_reports_dir(journey_id) / "heal-log.json")


# ── Fixes ─────────────────────────────────────────────────────

class TestFixes:
    def test_upgrade_locator(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        pipeline = make_pipeline()
        ir = pipeline.build_ir("JRN-0001")

        fix = upgrade_locator(ir, 3, pipeline.resolver)

        assert fix.ir.step(3).locator.strategy is LocatorStrategy.TEXT
        assert fix.summary == "step 3: css='.btn-submit' -> text='Submit'"
        assert ir.step(3).locator.strategy is LocatorStrategy.CSS

    def test_upgrade_needs_a_locator_step(self, make_pipeline, checkout):
        pipeline = make_pipeline()
        ir = pipeline.build_ir(checkout)
        assert upgrade_locator(ir, 1, pipeline.resolver) is None
        assert upgrade_locator(ir, None, pipeline.resolver) is None

    def test_add_exact(self, make_pipeline, checkout):
        pipeline = make_pipeline()
        ir = pipeline.build_ir(checkout)
        fix = add_exact(ir, 3, pipeline.resolver)
        assert fix.ir.step(3).locator.exact is True
        assert add_exact(fix.ir, 3, pipeline.resolver) is None

    def test_add_exact_leaves_text_assertions_alone(self, make_pipeline, cfg):
        write_journey(cfg, CHECKOUT_JOURNEY.replace(
            '- User should see the "Order placed" heading', '- The "Status" field should show "Order placed"'
        ))
        pipeline = make_pipeline()
        ir = pipeline.build_ir("JRN-0001")
        assert ir.step(4).primitive is IRPrimitive.ASSERT_TEXT
        assert add_exact(ir, 4, pipeline.resolver) is None

    def test_insert_navigation_wait(self, make_pipeline, checkout):
        pipeline = make_pipeline()
        ir = pipeline.build_ir(checkout)

        fix = insert_navigation_wait(ir, 3, pipeline.resolver)

        assert [s.primitive for s in fix.ir.steps] == [
            IRPrimitive.NAVIGATE, IRPrimitive.FILL, IRPrimitive.WAIT_FOR_STATE,
            IRPrimitive.CLICK, IRPrimitive.ASSERT_VISIBLE,
        ]
        assert [s.index for s in fix.ir.steps] == [1, 2, 3, 4, 5]
        assert fix.ir.step(3).acceptance_criterion_id == "AC-1"
        assert fix.moved_to == 4
        assert insert_navigation_wait(fix.ir, 4, pipeline.resolver) is None

    def test_namespace_data_stops_at_failing_step(self, make_pipeline, checkout):
        pipeline = make_pipeline()
        ir = pipeline.build_ir(checkout)
        assert namespace_data(ir, 1, pipeline.resolver) is None
        fix = namespace_data(ir, 3, pipeline.resolver)
        assert fix.ir.step(2).value.kind is ValueKind.VARIABLE
        assert fix.summary == "namespaced values of step(s) 2"

    def test_await_async_call(self, make_pipeline, cfg):
        write_journey(cfg, LOGIN_JOURNEY)
        pipeline = make_pipeline()
        ir = pipeline.build_ir("JRN-0001")
        fix = await_async_call(ir, None, pipeline.resolver)
        assert fix.ir.step(1).module_call.awaited is True
        assert await_async_call(fix.ir, None, pipeline.resolver) is None
        assert await_async_call(ir, 2, pipeline.resolver) is None


# ── Loop ──────────────────────────────────────────────────────

class TestHealingLoop:
    def test_selector_failure_is_healed(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        host = FakeHost((STRICT_MODE, 3), None)
        pipeline = make_pipeline(host)
        pipeline.generate("JRN-0001")

        result = pipeline.verify("JRN-0001", heal=True)

        assert result.passed
        assert (result.heal_outcome, result.heal_attempts) == ("succeeded", 1)
        assert host.calls == 2
        module = (cfg.modules_dir / "checkout.py").read_text()
        assert 'return page.get_by_text("Submit")' in module

        run = heal_log(cfg)["runs"][0]
        assert run["outcome"] == "succeeded"
        assert run["suggestion"] == 'Add (text="Submit") to step: Click the Submit button'
        entry = run["entries"][0]
        assert (entry["attempt_number"], entry["failure_category"], entry["rule_applied"], entry["result_status"]) == (
            1, "selector", "upgrade-locator", "succeeded",
        )
        assert read_json(cfg.journey_reports_dir("JRN-0001") / "verification.json")["heal_outcome"] == "succeeded"

    def test_attempts_are_bounded(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        host = FakeHost((STRICT_MODE, 3))
        pipeline = make_pipeline(host)
        pipeline.generate("JRN-0001")

        result = pipeline.verify("JRN-0001", heal=True)

        assert not result.passed
        assert (result.heal_outcome, result.heal_attempts) == ("exhausted", 3)
        # The initial run plus one verify per attempt.
        assert host.calls == 4
        entries = heal_log(cfg)["runs"][0]["entries"]
        assert [e["attempt_number"] for e in entries] == [1, 2, 3]
        assert {e["result_status"] for e in entries} == {"failed"}
        assert [e["diff_summary"] for e in entries] == [
            "step 3: css='.btn-submit' -> text='Submit'",
            "step 3: text='Submit' -> test-id='submit-button'",
            "step 3: test-id='submit-button' -> role='button'[name='Submit']",
        ]

    def test_runs_out_of_fixes(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        host = FakeHost((STRICT_MODE, 3))
        pipeline = make_pipeline(host)
        pipeline.generate("JRN-0001")

        result = pipeline.verify("JRN-0001", heal=True, max_heal_attempts=10)

        assert (result.heal_outcome, result.heal_attempts) == ("no-applicable-fix", 4)
        assert heal_log(cfg)["runs"][0]["entries"][-1]["rule_applied"] == "add-exact"
        assert host.calls == 5

    def test_zero_attempts(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        host = FakeHost((STRICT_MODE, 3))
        pipeline = make_pipeline(host)
        pipeline.generate("JRN-0001")

        result = pipeline.verify("JRN-0001", heal=True, max_heal_attempts=0)

        assert (result.heal_outcome, result.heal_attempts) == ("exhausted", 0)
        assert host.calls == 1

    def test_auth_failures_are_not_healed(self, make_pipeline, checkout, cfg):
        host = FakeHost(("Response was 401 Unauthorized", 1))
        pipeline = make_pipeline(host)
        pipeline.generate(checkout)

        result = pipeline.verify(checkout, heal=True)

        assert result.heal_outcome == "no-applicable-fix"
        assert result.first_failure.category == "auth"
        assert host.calls == 1
        assert heal_log(cfg)["runs"][0]["entries"] == []

    def test_navigation_wait_is_inserted(self, make_pipeline, checkout):
        host = FakeHost(('Locator.click: waiting for navigation to "/checkout" to finish', 3), None)
        pipeline = make_pipeline(host)
        pipeline.generate(checkout)

        result = pipeline.verify(checkout, heal=True)

        assert result.passed
        source = pipeline.generator.test_path(pipeline.build_ir(checkout)).read_text()
        assert "    # [3] Wait for the page to finish loading" in source
        assert '    await page.wait_for_load_state("load")' in source

    def test_blocked_fix_keeps_the_failing_step(self, make_pipeline, checkout, cfg):
        no_load_waits = build_policy({"forbidden_patterns": [
            {"id": "NO_LOAD_WAIT", "pattern": r"wait_for_load_state", "message": "load waits are not allowed"},
        ]})
        host = FakeHost(('Locator.click: waiting for navigation to "/checkout" to finish', 3))
        pipeline = make_pipeline(host, no_load_waits)
        pipeline.generate(checkout)

        result = pipeline.verify(checkout, heal=True)

        # The click is step 4 once the blocked wait is in place, and a wait
        # already precedes it, so nothing else applies.
        assert (result.heal_outcome, result.heal_attempts) == ("no-applicable-fix", 1)
        assert host.calls == 1
        entry = heal_log(cfg)["runs"][0]["entries"][0]
        assert (entry["rule_applied"], entry["result_status"]) == ("insert-navigation-wait", "failed")
        assert entry["diff_summary"] == (
            "inserted wait-for-state 'load' before step 3 (validation failed: load waits are not allowed)"
        )

    def test_colliding_data_is_namespaced(self, make_pipeline, checkout):
        host = FakeHost(('Error: customer "Jane" already exists', 3), None)
        pipeline = make_pipeline(host)
        pipeline.generate(checkout)

        assert pipeline.verify(checkout, heal=True).passed
        source = pipeline.generator.test_path(pipeline.build_ir(checkout)).read_text()
        assert '.fill(namespaced("Jane"))' in source

    def test_unawaited_module_call_is_awaited(self, make_pipeline, cfg):
        cfg.modules_dir.mkdir(parents=True)
        (cfg.modules_dir / "auth.py").write_text("from helpers.session import login\n")
        write_journey(cfg, LOGIN_JOURNEY)
        host = FakeHost(("RuntimeWarning: coroutine 'login' was never awaited", 1), None)
        pipeline = make_pipeline(host)
        test_file = pipeline.generate("JRN-0001").test_file
        assert '    auth.login(page, "admin")' in test_file.read_text()

        result = pipeline.verify("JRN-0001", heal=True)

        assert result.passed
        assert '    await auth.login(page, "admin")' in test_file.read_text()
        assert heal_log(cfg)["runs"][0]["entries"][0]["rule_applied"] == "await-async-call"

    def test_without_heal_flag_nothing_changes(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        host = FakeHost((STRICT_MODE, 3), None)
        pipeline = make_pipeline(host)
        pipeline.generate("JRN-0001")
        before = (cfg.modules_dir / "checkout.py").read_text()

        result = pipeline.verify("JRN-0001")

        assert not result.passed
        assert result.heal_outcome is None
        assert (cfg.modules_dir / "checkout.py").read_text() == before
        assert not (cfg.journey_reports_dir("JRN-0001") / "heal-log.json").exists()

    def test_heal_log_keeps_earlier_runs(self, make_pipeline, checkout, cfg):
        pipeline = make_pipeline(FakeHost(("Response was 401 Unauthorized", 1)))
        pipeline.generate(checkout)
        pipeline.verify(checkout, heal=True)
        pipeline.verify(checkout, heal=True)
        assert len(heal_log(cfg)["runs"]) == 2


def test_passing_run_skips_healing(make_pipeline, checkout):
    host = FakeHost()
    pipeline = make_pipeline(host)
    pipeline.generate(checkout)
    result = pipeline.verify(checkout, heal=True)
    assert result.passed
    assert result.heal_outcome is None
    assert host.calls == 1
