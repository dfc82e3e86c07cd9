"""Pruebas de redacción de secretos en logs. / Log redaction tests."""

from __future__ import annotations

import logging

from urna.logging import SensitiveDataFilter, bind_context, setup_logging


def _record(message: str, *args) -> logging.LogRecord:
    return logging.LogRecord("urna", logging.INFO, __file__, 1, message, args, None)


def test_filter_redacts_secrets() -> None:
    record = _record("authority key=%s accepted", "admin1")

    assert SensitiveDataFilter(["admin1"]).filter(record) is True
    assert record.getMessage() == "authority key=[REDACTED] accepted"


def test_filter_leaves_clean_messages() -> None:
    record = _record("vote accepted booth=%s", "B1")
    SensitiveDataFilter(["admin1", ""]).filter(record)

    assert record.getMessage() == "vote accepted booth=B1"


def test_setup_logging_creates_log_dir(tmp_path, restore_root_logging) -> None:
    logger = setup_logging("INFO", tmp_path, sensitive_values=["secret"])
    bound = bind_context(logger, election_name="Test", booth_id="B1", status="ACTIVE")

    assert (tmp_path / "logs").is_dir()
    assert bound is not None
