"""
Tests for settings, logging setup and the CLI.
"""

import logging
import sys

import pytest

from ..cli import main
from ..config import Settings, load_settings
from ..logging_config import TerminalFormatter, setup_logging


class TestSettings:
    """Tests for load_settings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "BOARDFLOW_ENV", "BOARDFLOW_LOG_LEVEL", "BOARDFLOW_HOST",
            "BOARDFLOW_PORT", "BOARDFLOW_NUM_PLAYERS", "ALLOWED_ORIGINS",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()

        assert settings == Settings()
        assert not settings.is_production

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("BOARDFLOW_ENV", "production")
        monkeypatch.setenv("BOARDFLOW_PORT", "9001")
        monkeypatch.setenv("BOARDFLOW_NUM_PLAYERS", "4")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")

        settings = load_settings()

        assert settings.is_production
        assert settings.port == 9001
        assert settings.default_num_players == 4
        assert settings.allowed_origins == ["https://a.example", "https://b.example"]


class TestLogging:
    """Tests for setup_logging."""

    def test_level_by_name(self):
        logger = setup_logging("debug", color=False)
        assert logger.name == "boardflow"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert not logger.propagate

    def test_unknown_level_falls_back_to_info(self):
        assert setup_logging("chatty").level == logging.INFO

    def test_colored_formatter(self):
        setup_logging(logging.WARNING)
        formatter = logging.getLogger("boardflow").handlers[0].formatter
        assert isinstance(formatter, TerminalFormatter)

        record = logging.LogRecord("boardflow", logging.WARNING, __file__, 1, "hi", None, None)
        assert "\033[33m" in formatter.format(record)
        assert record.levelname == "WARNING"


class TestCli:
    """Tests for the boardflow command."""

    def test_demo_plays_to_the_end(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["boardflow", "--log-level", "WARNING", "demo", "--seed", "3"])
        main()
        out = capsys.readouterr().out
        assert "Playing tic-tac-toe with 2 players" in out
        assert "Result: {" in out

    def test_demo_unknown_game(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["boardflow", "demo", "--game", "chess"])
        with pytest.raises(SystemExit):
            main()

    def test_no_command(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["boardflow"])
        with pytest.raises(SystemExit):
            main()
