"""
Tests for logging configuration and secret masking.
"""

import logging

from mssqlpermissions.infrastructure.logging_config import (
    ColoredFormatter,
    SecretMaskingFilter,
    setup_logging,
)


def _record(msg, *args, level=logging.INFO):
    return logging.LogRecord("mssqlpermissions.test", level, __file__, 1, msg, args, None)


class TestSecretMaskingFilter:
    def test_masks_odbc_password(self):
        record = _record("Connecting with %s", "Server=tcp:srv,1433;UID=sa;PWD=hunter2;Encrypt=yes")
        assert SecretMaskingFilter().filter(record) is True
        assert record.getMessage() == "Connecting with Server=tcp:srv,1433;UID=sa;PWD=xxxxx;Encrypt=yes"

    def test_masks_braced_password(self):
        record = _record("PWD={a;b}}c};APP=x")
        SecretMaskingFilter().filter(record)
        assert record.getMessage() == "PWD=xxxxx;APP=x"

    def test_masks_url_password(self):
        record = _record("sqlserver://srv:1433?database=appdb&password=s%21&fedauth=x")
        SecretMaskingFilter().filter(record)
        assert "s%21" not in record.getMessage()
        assert "password=xxxxx&fedauth=x" in record.getMessage()

    def test_leaves_plain_messages(self):
        record = _record("Granting %s to %s", "SELECT", "reporting")
        SecretMaskingFilter().filter(record)
        assert record.args == ("SELECT", "reporting")


class TestColoredFormatter:
    def test_restores_record(self):
        formatter = ColoredFormatter("%(levelname)s %(name)s %(message)s", use_colors=True)
        record = _record("hello", level=logging.WARNING)
        output = formatter.format(record)
        assert "\033[" in output
        assert record.levelname == "WARNING"
        assert record.name == "mssqlpermissions.test"

    def test_without_colors(self):
        formatter = ColoredFormatter("%(levelname)s %(message)s", use_colors=False)
        assert formatter.format(_record("hello")) == "INFO hello"


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    setup_logging(logging.INFO, str(log_file))

    logging.getLogger("mssqlpermissions.test").debug("Connection PWD=secret;")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "PWD=xxxxx;" in content
    assert "secret" not in content
    assert logging.getLogger("pyodbc").level == logging.WARNING
