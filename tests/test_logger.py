from __future__ import annotations

import json
import logging

from restock_monitor.misc.logger import CallbackHandler, _JsonFormatter, get_logger


def test_callback_handler_forwards_formatted_lines() -> None:
    lines: list[str] = []
    logger = get_logger("test_callback")
    handler = CallbackHandler(lines.append)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        logger.info("scan items=%s", 3)
        logger.debug("hidden")
    finally:
        logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

    assert len(lines) == 1
    assert lines[0].endswith("] [test_callback] scan items=3")


def test_json_formatter_emits_one_object() -> None:
    record = logging.LogRecord("poll_cycle", logging.WARNING, __file__, 1, "fetch failed %s", ("x",), None)
    payload = json.loads(_JsonFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "poll_cycle"
    assert payload["message"] == "fetch failed x"
