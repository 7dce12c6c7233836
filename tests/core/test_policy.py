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

"""Tests for the pipeline policy and project configuration."""

import threading
import time

import pytest

from artk_autogen.core.config import Config
from artk_autogen.core.errors import ConfigError
from artk_autogen.core.locks import file_lock, lock_path_for
from artk_autogen.core.policy import (
    DEFAULT_POLICY,
    KNOWN_FIXES,
    Strictness,
    build_policy,
    load_policy,
)


# ── Policy ────────────────────────────────────────────────────

class TestBuildPolicy:
    def test_defaults(self):
        policy = build_policy()
        assert policy.strictness is Strictness.STANDARD
        assert policy.healing.max_attempts == 3
        assert policy.fixes_for("selector") == ("upgrade-locator", "add-exact")
        assert policy.fixes_for("auth") == ()
        assert {p.id for p in policy.forbidden_patterns} >= {"WAIT_TIMEOUT", "SLEEP", "CSS_SELECTOR"}

    def test_overrides_are_deep_merged(self):
        policy = build_policy({"healing": {"max_attempts": 5}, "strictness": "strict"})
        assert policy.healing.max_attempts == 5
        assert policy.strictness is Strictness.STRICT
        # Untouched sibling keys survive the merge.
        assert policy.fixes_for("timing") == KNOWN_FIXES["timing"]

    def test_lists_are_replaced_not_appended(self):
        policy = build_policy({"forbidden_patterns": [
            {"id": "ONLY", "pattern": "foo", "message": "no foo"},
        ]})
        assert [p.id for p in policy.forbidden_patterns] == ["ONLY"]

    def test_allow_list_can_be_narrowed(self):
        policy = build_policy({"healing": {"allowed_fixes": {"selector": ["add-exact"], "data": []}}})
        assert policy.fixes_for("selector") == ("add-exact",)
        assert policy.fixes_for("data") == ()

    def test_unknown_fix_rejected(self):
        with pytest.raises(ConfigError, match="unknown selector fixes"):
            build_policy({"healing": {"allowed_fixes": {"selector": ["sleep-longer"]}}})

    def test_fix_for_unhealable_category_rejected(self):
        with pytest.raises(ConfigError):
            build_policy({"healing": {"allowed_fixes": {"auth": ["upgrade-locator"]}}})

    def test_negative_attempt_bound_rejected(self):
        with pytest.raises(ConfigError):
            build_policy({"healing": {"max_attempts": -1}})

    def test_bad_regex_rejected(self):
        with pytest.raises(ConfigError):
            build_policy({"forbidden_patterns": [{"id": "X", "pattern": "(", "message": "m"}]})

    def test_policy_is_frozen(self):
        policy = build_policy()
        with pytest.raises(Exception):
            policy.strictness = Strictness.LENIENT

    def test_defaults_not_mutated(self):
        build_policy({"healing": {"max_attempts": 9}})
        assert DEFAULT_POLICY["healing"]["max_attempts"] == 3


class TestLoadPolicy:
    def test_missing_file_uses_defaults(self, cfg):
        assert load_policy(cfg).healing.max_attempts == 3

    def test_reads_yaml_and_applies_paths(self, cfg):
        cfg.policy_file.write_text(
            "strictness: lenient\n"
            "paths:\n"
            "  journeys: specs/journeys\n"
            "  harness: browser\n"
        )
        policy = load_policy(cfg)
        assert policy.strictness is Strictness.LENIENT
        assert cfg.journeys_dir == cfg.repo_root / "specs" / "journeys"
        assert cfg.tests_dir == cfg.repo_root / "browser" / "tests"
        assert cfg.registry_file == cfg.repo_root / "browser" / "modules" / "registry.json"

    def test_non_mapping_rejected(self, cfg):
        cfg.policy_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_policy(cfg)

    def test_invalid_yaml_rejected(self, cfg):
        cfg.policy_file.write_text("strictness: [unclosed\n")
        with pytest.raises(ConfigError):
            load_policy(cfg)


# ── Config ────────────────────────────────────────────────────

class TestConfig:
    def test_layout(self, tmp_path):
        tmp_path = tmp_path.resolve()
        cfg = Config(tmp_path)
        assert cfg.catalog_file == tmp_path / ".artk" / "selectors" / "catalog.json"
        assert cfg.journey_reports_dir("JRN-0001") == tmp_path / ".artk" / "autogen" / "reports" / "JRN-0001"
        assert cfg.modules_dir == tmp_path / "e2e" / "modules"

    def test_artk_root_env_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ARTK_ROOT", str(tmp_path))
        assert Config().repo_root == tmp_path.resolve()

    def test_upward_traversal_finds_artk_dir(self, tmp_path, monkeypatch):
        (tmp_path / ".artk").mkdir()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.delenv("ARTK_ROOT", raising=False)
        monkeypatch.chdir(nested)
        assert Config().repo_root == tmp_path.resolve()

    def test_save_json_is_sorted_and_newline_terminated(self, tmp_path):
        cfg = Config(tmp_path)
        target = tmp_path / "out" / "data.json"
        cfg.save_json(target, {"b": 1, "a": 2})
        assert target.read_text() == '{\n  "a": 2,\n  "b": 1\n}\n'
        assert not target.with_suffix(".tmp").exists()


# ── Locks ─────────────────────────────────────────────────────

class TestFileLock:
    def test_sidecar_lock_file(self, tmp_path):
        target = tmp_path / "modules" / "shared.py"
        with file_lock(target):
            assert lock_path_for(target.resolve()).exists()

    def test_serializes_threads_on_same_file(self, tmp_path):
        target = tmp_path / "shared.py"
        active = []
        overlaps = []

        def worker():
            with file_lock(target):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == []
