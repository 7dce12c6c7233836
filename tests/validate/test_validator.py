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

"""Tests for static validation of generated files."""

import pytest

from artk_autogen.core.policy import build_policy

from conftest import CHECKOUT_JOURNEY, CSS_JOURNEY, read_json, step_line, write_journey


@pytest.fixture
def generated(make_pipeline, checkout):
    """A pipeline whose checkout journey has already been generated."""
    pipeline = make_pipeline()
    pipeline.generate(checkout)
    return pipeline


def rules(result):
    return [issue.rule for issue in result.issues]


def edit(path, old, new):
    text = path.read_text()
    assert old in text
    path.write_text(text.replace(old, new, 1))


class TestCleanOutput:
    def test_fresh_generation_passes(self, generated, cfg):
        result = generated.validate("JRN-0001")
        assert result.passed
        assert result.issues == []
        assert result.checked_files == [
            str(cfg.tests_dir / "checkout" / "test_jrn_0001.py"),
            str(cfg.modules_dir / "checkout.py"),
        ]

    def test_results_are_saved(self, generated, cfg):
        generated.validate("JRN-0001")
        saved = read_json(cfg.journey_reports_dir("JRN-0001") / "validation-results.json")
        assert saved["status"] == "passed"
        assert saved["strictness"] == "standard"

    def test_missing_artifacts(self, make_pipeline, checkout):
        result = make_pipeline().validate(checkout)
        assert rules(result) == ["MISSING_ARTIFACT", "MISSING_ARTIFACT"]
        assert not result.passed


class TestForbiddenPatterns:
    def test_css_fallback_is_a_warning(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        pipeline = make_pipeline()
        pipeline.generate("JRN-0001")

        result = pipeline.validate("JRN-0001")

        assert result.passed
        assert [(i.rule, i.severity, i.fix_category) for i in result.issues] == [("CSS_SELECTOR", "warning", "selector")]
        assert result.issues[0].file.endswith("checkout.py")

    def test_strict_promotes_warnings(self, make_pipeline, cfg):
        write_journey(cfg, CSS_JOURNEY)
        pipeline = make_pipeline(pipeline_policy=build_policy({"strictness": "strict"}))
        pipeline.generate("JRN-0001")

        result = pipeline.validate("JRN-0001")

        assert not result.passed
        assert [i.severity for i in result.issues] == ["error"]

    def test_hand_written_wait_is_an_error(self, generated, cfg):
        test_file = cfg.tests_dir / "checkout" / "test_jrn_0001.py"
        test_file.write_text(test_file.read_text() + "    await page.wait_for_timeout(1000)\n")

        result = generated.validate("JRN-0001")

        assert not result.passed
        issue = result.errors[0]
        assert (issue.rule, issue.fix_category) == ("WAIT_TIMEOUT", "timing")
        assert issue.line == len(test_file.read_text().split("\n")) - 1

    def test_lenient_demotes_errors(self, make_pipeline, checkout, cfg):
        pipeline = make_pipeline(pipeline_policy=build_policy({"strictness": "lenient"}))
        pipeline.generate(checkout)
        test_file = cfg.tests_dir / "checkout" / "test_jrn_0001.py"
        test_file.write_text(test_file.read_text() + "    await page.wait_for_timeout(1000)\n")

        result = pipeline.validate(checkout)

        assert result.passed
        assert rules(result) == ["WAIT_TIMEOUT"]
        assert result.warnings[0].severity == "warning"

    def test_commented_out_code_is_ignored(self, generated, cfg):
        test_file = cfg.tests_dir / "checkout" / "test_jrn_0001.py"
        test_file.write_text(test_file.read_text() + "    # await page.wait_for_timeout(1000)\n")
        assert generated.validate("JRN-0001").issues == []


class TestStructure:
    def test_syntax_error_always_blocks(self, make_pipeline, checkout, cfg):
        pipeline = make_pipeline(pipeline_policy=build_policy({"strictness": "lenient"}))
        pipeline.generate(checkout)
        module = cfg.modules_dir / "checkout.py"
        module.write_text(module.read_text() + "\ndef broken(:\n")

        result = pipeline.validate(checkout)

        assert not result.passed
        assert [(i.rule, i.severity) for i in result.errors] == [("SYNTAX_ERROR", "error")]

    def test_missing_await(self, generated, cfg):
        test_file = cfg.tests_dir / "checkout" / "test_jrn_0001.py"
        edit(test_file, "    await page.goto(", "    page.goto(")

        result = generated.validate("JRN-0001")

        assert rules(result) == ["MISSING_AWAIT"]
        assert result.issues[0].line == step_line(test_file, 1)
        assert result.issues[0].fix_category == "timing"

    def test_missing_required_tag(self, generated, cfg):
        edit(cfg.tests_dir / "checkout" / "test_jrn_0001.py", '"@tier-smoke", ', "")
        result = generated.validate("JRN-0001")
        assert rules(result) == ["MISSING_TAG"]
        assert "@tier-smoke" in result.issues[0].message

    def test_missing_selection_marker(self, generated, cfg):
        edit(cfg.tests_dir / "checkout" / "test_jrn_0001.py", "    pytest.mark.jrn_0001,\n", "")
        result = generated.validate("JRN-0001")
        assert rules(result) == ["MISSING_TAG"]
        assert "'jrn_0001'" in result.issues[0].message

    def test_duplicate_test_function(self, generated, cfg):
        test_file = cfg.tests_dir / "checkout" / "test_jrn_0001.py"
        test_file.write_text(test_file.read_text() + "\n\nasync def test_jrn_0001(page):\n    pass\n")
        assert rules(generated.validate("JRN-0001")) == ["DUPLICATE_TEST"]

    def test_corrupt_markers(self, generated, cfg):
        edit(cfg.tests_dir / "checkout" / "test_jrn_0001.py", "    # artk:end AC-1\n", "")
        result = generated.validate("JRN-0001")
        assert rules(result) == ["CORRUPT_MARKERS"]


class TestCoverage:
    def test_criterion_without_steps(self, make_pipeline, cfg):
        write_journey(cfg, CHECKOUT_JOURNEY.replace('- User should see the "Order placed" heading\n', ""))
        pipeline = make_pipeline()
        pipeline.generate("JRN-0001")

        result = pipeline.validate("JRN-0001")

        assert rules(result) == ["AC_NOT_COVERED"]
        assert result.issues[0].message == "AC-2 has no mapped steps"

    def test_emptied_block(self, generated, cfg):
        test_file = cfg.tests_dir / "checkout" / "test_jrn_0001.py"
        lines = test_file.read_text().split("\n")
        start = lines.index("    # artk:begin AC-2")
        end = lines.index("    # artk:end AC-2")
        test_file.write_text("\n".join(lines[: start + 1] + ["    pass"] + lines[end:]))

        result = generated.validate("JRN-0001")

        assert rules(result) == ["AC_NOT_COVERED"]
        assert result.issues[0].message == "AC-2 block contains no generated steps"

    def test_scaffolded_module_is_flagged(self, make_pipeline, cfg):
        write_journey(cfg, CHECKOUT_JOURNEY.replace(
            '- Navigate to "/checkout"\n', '- Log in as "admin"\n- Navigate to "/checkout"\n'
        ))
        pipeline = make_pipeline()
        pipeline.generate("JRN-0001")

        result = pipeline.validate("JRN-0001")

        assert result.passed
        assert [(i.rule, i.severity) for i in result.issues] == [("MODULE_STUB", "warning")]
