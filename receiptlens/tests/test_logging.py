import logging

from receiptlens.runtime.logging import (
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    LOG_NAMESPACE,
    get_logger,
    parse_log_level,
    set_log_level,
)


def test_get_logger_namespaces_module_names() -> None:
    assert get_logger("scratch").name == f"{LOG_NAMESPACE}.scratch"
    assert get_logger("receiptlens.receipt.reconciler").name == "receiptlens.receipt.reconciler"


def test_parse_log_level() -> None:
    assert parse_log_level("debug") == logging.DEBUG
    assert parse_log_level(" Warn ") == logging.WARNING
    assert parse_log_level("LOUD") is None


def test_set_log_level_switches_debug_format() -> None:
    namespace = logging.getLogger(LOG_NAMESPACE)
    previous = namespace.level
    try:
        set_log_level(logging.DEBUG)
        assert namespace.level == logging.DEBUG
        assert all(handler.formatter._fmt == LOG_FORMAT_DEBUG for handler in namespace.handlers)

        set_log_level(logging.WARNING)
        assert namespace.level == logging.WARNING
        assert all(handler.formatter._fmt == LOG_FORMAT for handler in namespace.handlers)
    finally:
        set_log_level(previous)
