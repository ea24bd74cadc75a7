"""Tests for configuration, logging setup and the result envelope."""

import json
from datetime import UTC, datetime

from loguru import logger

from devforge.config.settings import Settings
from devforge.core.logger import setup_logger
from devforge.db.models import ServiceStatus
from devforge.mcp_server.content import dumps, not_found, payload_of, text_content


def test_invalid_log_level_defaults_to_info():
    assert Settings(LOG_LEVEL="verbose").log_level == "INFO"
    assert Settings(LOG_LEVEL="debug").log_level == "DEBUG"


def test_failure_rate_is_clamped():
    assert Settings(WORKFLOW_TEST_FAILURE_RATE=1.5).workflow_test_failure_rate == 1.0
    assert Settings(WORKFLOW_TEST_FAILURE_RATE=-0.2).workflow_test_failure_rate == 0.0


def test_negative_delay_scale_disables_delays():
    assert Settings(WORKFLOW_DELAY_SCALE=-1).workflow_delay_scale == 0.0


def test_database_url_from_argument():
    assert Settings(DATABASE_URL="sqlite:///:memory:").database_url == "sqlite:///:memory:"


def test_text_content_shape():
    envelope = text_content({"a": 1})

    assert envelope == {"content": [{"type": "text", "text": json.dumps({"a": 1}, indent=2)}]}
    assert payload_of(envelope) == {"a": 1}


def test_dumps_handles_datetimes_and_enums():
    naive = datetime(2026, 3, 1, 8, 30)

    payload = json.loads(dumps({"at": naive, "status": ServiceStatus.ACTIVE, "tags": {"b", "a"}}))

    assert payload == {"at": datetime(2026, 3, 1, 8, 30, tzinfo=UTC).isoformat(), "status": "ACTIVE", "tags": ["a", "b"]}


def test_not_found_omits_suggestions_when_not_given():
    assert payload_of(not_found("missing")) == {"error": "missing"}
    assert payload_of(not_found("missing", suggestions=[])) == {"error": "missing", "suggestions": []}


def test_error_records_get_their_own_file(tmp_path):
    log_file = tmp_path / "logs" / "devforge.log"

    setup_logger(level="INFO", log_file=str(log_file))
    logger.info("catalog refreshed")
    logger.error("database unreachable")
    setup_logger(level="INFO")

    assert "catalog refreshed" in log_file.read_text()
    error_log = (tmp_path / "logs" / "devforge.error.log").read_text()
    assert "database unreachable" in error_log
    assert "catalog refreshed" not in error_log
