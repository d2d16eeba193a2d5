"""Tests for structured logging setup."""

import json
from collections.abc import Iterator

import pytest
import structlog

from modelflow.utils.logging import (
    configure_logging,
    get_logger,
    log_context,
    use_stderr_default,
)


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()
    use_stderr_default()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_unknown_level(self) -> None:
        """Test that unknown level names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("VERBOSE")

    def test_json_events_carry_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that bound context appears in JSON events on stderr."""
        configure_logging("INFO", json_output=True)
        log = get_logger("modelflow.test")

        with log_context(project="urchins-ols"):
            log.info("Fitted model", n_rows=72)

        captured = capsys.readouterr()
        assert captured.out == ""
        event = json.loads(captured.err.strip().splitlines()[-1])
        assert event["event"] == "Fitted model"
        assert event["project"] == "urchins-ols"
        assert event["n_rows"] == 72
        assert event["level"] == "info"

    def test_level_filters_events(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that events below the configured level are dropped."""
        configure_logging("warning", json_output=True)
        log = get_logger("modelflow.test")

        log.info("hidden")
        log.warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err

    def test_stderr_before_configuration(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that unconfigured library logging stays off stdout."""
        structlog.reset_defaults()
        use_stderr_default()

        get_logger("modelflow.test").info("Read table", rows=3)

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Read table" in captured.err
