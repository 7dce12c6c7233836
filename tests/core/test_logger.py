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

"""Tests for the artk logger hierarchy and its configuration."""

import logging

import pytest
from rich.logging import RichHandler

from artk_autogen.core import config as config_module
from artk_autogen.core import logger as logger_module
from artk_autogen.core.logger import LOG_FILE, configure_logging, get_logger, levels_for


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    monkeypatch.delenv("ARTK_LOG_LEVEL", raising=False)
    root = logging.getLogger()
    artk = logging.getLogger("artk")
    saved = (root.level, artk.level)
    yield
    for key in list(logger_module._installed):
        logger_module._install(key, root, None)
    root.setLevel(saved[0])
    artk.setLevel(saved[1])


def _handlers(name, kind):
    return [h for h in logging.getLogger(name).handlers if isinstance(h, kind)]


# ── Names ─────────────────────────────────────────────────────

class TestGetLogger:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("artk_autogen.heal.loop", "artk.heal.loop"),
            ("heal.loop", "artk.heal.loop"),
            ("commands", "artk.commands"),
            ("artk_autogen", "artk"),
        ],
    )
    def test_names_live_under_artk(self, name, expected):
        assert get_logger(name).name == expected

    def test_config_logs_under_artk(self):
        assert config_module.logger.name == "artk.core.config"


# ── Levels ────────────────────────────────────────────────────

class TestLevels:
    @pytest.mark.parametrize(
        "verbosity, expected",
        [
            (0, (logging.WARNING, logging.WARNING)),
            (1, (logging.INFO, logging.WARNING)),
            (2, (logging.DEBUG, logging.WARNING)),
            (3, (logging.DEBUG, logging.DEBUG)),
            (7, (logging.DEBUG, logging.DEBUG)),
        ],
    )
    def test_verbosity_table(self, verbosity, expected):
        assert levels_for(verbosity) == expected

    def test_environment_sets_the_default_level(self, monkeypatch):
        monkeypatch.setenv("ARTK_LOG_LEVEL", "info")
        assert levels_for(0) == (logging.INFO, logging.WARNING)
        # An explicit -v wins.
        assert levels_for(2) == (logging.DEBUG, logging.WARNING)

    def test_unknown_environment_level_is_ignored(self, monkeypatch):
        monkeypatch.setenv("ARTK_LOG_LEVEL", "chatty")
        assert levels_for(0) == (logging.WARNING, logging.WARNING)


# ── Handlers ──────────────────────────────────────────────────

class TestConfigureLogging:
    def test_records_reach_the_project_log(self, tmp_path):
        logs_dir = tmp_path / ".artk" / "logs"
        configure_logging(1, logs_dir=logs_dir)
        get_logger("heal.loop").info("JRN-0001: healing finished succeeded")
        get_logger("heal.loop").debug("not at -v")

        text = (logs_dir / LOG_FILE).read_text(encoding="utf-8")
        assert "artk.heal.loop - INFO - JRN-0001: healing finished succeeded" in text
        assert "not at -v" not in text

    def test_repeated_calls_do_not_stack_handlers(self, tmp_path):
        configure_logging(0, logs_dir=tmp_path / "first")
        configure_logging(2, logs_dir=tmp_path / "second")

        files = _handlers("artk", logging.FileHandler)
        assert len(files) == 1
        assert files[0].baseFilename == str(tmp_path / "second" / LOG_FILE)
        assert len(_handlers("", RichHandler)) == 1
        assert logging.getLogger("artk").level == logging.DEBUG

    def test_no_project_directory_means_no_file_log(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module.config, "artk_dir", tmp_path / "missing")
        configure_logging(0)
        assert _handlers("artk", logging.FileHandler) == []
