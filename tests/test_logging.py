# tests/test_logging.py
import logging

from newsfeed.logging_setup import ExtraFieldsFormatter, RequestIdFilter, request_id_var


def _record(msg, **extra):
    rec = logging.LogRecord("newsfeed.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(rec, k, v)
    RequestIdFilter().filter(rec)
    return rec


def test_extra_fields_are_appended():
    fmt = ExtraFieldsFormatter("%(name)s | req=%(request_id)s | %(message)s")
    token = request_id_var.set("r-1")
    try:
        line = fmt.format(_record("BATCH_FAILED", step="analyze", handled=True))
    finally:
        request_id_var.reset(token)
    assert line == "newsfeed.test | req=r-1 | BATCH_FAILED [handled=True step=analyze]"


def test_plain_message_untouched():
    fmt = ExtraFieldsFormatter("%(message)s")
    assert fmt.format(_record("HELLO")) == "HELLO"
