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

"""Tests for the selector catalog, locator resolution and selector debt."""

import pytest

from artk_autogen.core.errors import ConfigError
from artk_autogen.ir.types import LocatorSpec, LocatorStrategy, TargetRef
from artk_autogen.journey.hints import StepHint
from artk_autogen.mapping.glossary import GlossaryIndex
from artk_autogen.selectors.catalog import SelectorCatalog
from artk_autogen.selectors.debt import DebtEntry, DebtRecorder, load_debt_report, merge_debt_report
from artk_autogen.selectors.resolver import SelectorResolver, looks_like_css

from conftest import read_json

RICH_CATALOG = {
    "testIds": ["submit-button"],
    "entries": {
        "email": {"role": "textbox", "name": "Email", "testid": "email-input"},
        "save": {"testid": "save-button", "css": ".btn-save"},
    },
}


@pytest.fixture
def resolver(policy):
    return SelectorResolver(SelectorCatalog.from_dict(RICH_CATALOG), GlossaryIndex(policy.glossary))


# ── Catalog ───────────────────────────────────────────────────

class TestCatalog:
    def test_lookup_is_case_and_quote_insensitive(self):
        catalog = SelectorCatalog.from_dict(RICH_CATALOG)
        assert catalog.lookup('"EMAIL"').testid == "email-input"
        assert catalog.lookup(".btn-save").key == "save"

    def test_entry_test_ids_are_known(self):
        catalog = SelectorCatalog.from_dict(RICH_CATALOG)
        assert catalog.has_test_id("save-button")
        assert catalog.has_test_id("submit-button")

    def test_slug_convention(self):
        catalog = SelectorCatalog.from_dict(RICH_CATALOG)
        assert catalog.find_test_id("Submit", "button") == "submit-button"
        assert catalog.find_test_id("Cancel", "button") is None

    def test_unknown_entry_field(self):
        with pytest.raises(ConfigError, match="unknown fields: xpath"):
            SelectorCatalog.from_dict({"testIds": [], "entries": {"x": {"xpath": "//a"}}})

    def test_wrong_shape(self):
        with pytest.raises(ConfigError):
            SelectorCatalog.from_dict({"testIds": "submit-button"})

    def test_load_missing_file_is_empty(self, tmp_path):
        assert len(SelectorCatalog.load(tmp_path / "catalog.json")) == 0

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid selector catalog"):
            SelectorCatalog.load(path)


# ── Resolution ────────────────────────────────────────────────

class TestResolver:
    def test_role_is_preferred(self, resolver):
        spec = resolver.resolve(TargetRef("Submit", "button"))
        assert (spec.strategy, spec.value, spec.name) == (LocatorStrategy.ROLE, "button", "Submit")

    def test_candidates_follow_priority(self, resolver):
        strategies = [s.strategy for s in resolver.candidates(TargetRef("Submit", "button"))]
        assert strategies == [LocatorStrategy.ROLE, LocatorStrategy.TEST_ID, LocatorStrategy.TEXT]

    def test_catalog_entry_through_label_alias(self, resolver):
        spec = resolver.resolve(TargetRef("E-mail", "field"))
        assert (spec.value, spec.name) == ("textbox", "Email")

    def test_catalog_test_id_without_role(self, resolver):
        spec = resolver.resolve(TargetRef("Save"))
        assert (spec.strategy, spec.value) == (LocatorStrategy.TEST_ID, "save-button")

    def test_text_fallback(self, resolver):
        spec = resolver.resolve(TargetRef("Forgot your password?"))
        assert (spec.strategy, spec.value) == (LocatorStrategy.TEXT, "Forgot your password?")

    def test_embedded_test_id_selector(self, resolver):
        spec = resolver.resolve(TargetRef('[data-testid="cart-icon"]'))
        assert (spec.strategy, spec.value) == (LocatorStrategy.TEST_ID, "cart-icon")

    def test_css_target_is_recorded_as_debt(self, resolver):
        debt = DebtRecorder()
        spec = resolver.resolve(TargetRef(".promo > a"), debt=debt, journey_id="JRN-0003", file="j.md", line=9)
        assert spec.strategy is LocatorStrategy.CSS
        assert debt.entries == (DebtEntry(".promo > a", ".promo > a", "j.md", 9, "JRN-0003"),)

    def test_pinned_hint_wins(self, resolver):
        hint = StepHint(role="link", name="Save draft", exact=True)
        spec = resolver.resolve(TargetRef("Save", "button"), hint)
        assert (spec.value, spec.name, spec.exact) == ("link", "Save draft", True)

    def test_nothing_resolvable(self, resolver):
        assert resolver.resolve(TargetRef("")) is None

    def test_upgrade_moves_one_notch(self, resolver):
        target = TargetRef("Submit", "button")
        css = LocatorSpec(LocatorStrategy.CSS, ".btn-submit")
        text = resolver.upgrade(target, css)
        assert text.strategy is LocatorStrategy.TEXT
        test_id = resolver.upgrade(target, text)
        assert (test_id.strategy, test_id.value) == (LocatorStrategy.TEST_ID, "submit-button")
        role = resolver.upgrade(target, test_id)
        assert role.strategy is LocatorStrategy.ROLE
        assert resolver.upgrade(target, role) is None

    @pytest.mark.parametrize("text, expected", [
        (".btn-save", True),
        ("#main", True),
        ("button.primary", True),
        ("nav > a", True),
        ("Save", False),
        ("Save changes", False),
    ])
    def test_looks_like_css(self, text, expected):
        assert looks_like_css(text) is expected


# ── Debt ──────────────────────────────────────────────────────

class TestDebtReport:
    def test_merge_counts_repeat_hits(self, tmp_path):
        path = tmp_path / "selector-debt.json"
        first = DebtEntry("Submit", ".btn-submit", "journeys/JRN-0002.md", 15, "JRN-0002")
        again = DebtEntry("Submit", ".btn-submit", "journeys/JRN-0002.md", 15, "JRN-0001")
        other = DebtEntry("Promo", ".promo", "journeys/JRN-0002.md", 20, "JRN-0002")

        merge_debt_report(path, (first, other))
        rows = merge_debt_report(path, (again,))

        assert [(r["target"], r["count"]) for r in rows] == [("Submit", 2), ("Promo", 1)]
        assert rows[0]["journeys"] == ["JRN-0001", "JRN-0002"]
        assert read_json(path)["version"] == 1
        assert load_debt_report(path) == rows

    def test_empty_merge_does_not_create_file(self, tmp_path):
        path = tmp_path / "selector-debt.json"
        assert merge_debt_report(path, ()) == []
        assert not path.exists()
