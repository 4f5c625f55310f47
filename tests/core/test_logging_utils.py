# tests/core/test_logging_utils.py
import json
import logging
import sys

from dictation_room.core.logging_utils import JSONLogFormatter

def _record(msg="Room %s created", args=("ROOM01",), **extra):
    record = logging.LogRecord(
        name="dictation_room.test", level=logging.INFO, pathname=__file__, lineno=10,
        msg=msg, args=args, exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record

def test_formats_mapped_keys_and_message():
    formatter = JSONLogFormatter(fmt_keys={"level": "levelname", "logger": "name", "timestamp": "timestamp"})
    data = json.loads(formatter.format(_record()))
    assert data["level"] == "INFO"
    assert data["logger"] == "dictation_room.test"
    assert data["message"] == "Room ROOM01 created"
    assert "timestamp" in data

def test_extra_fields_are_included():
    formatter = JSONLogFormatter(fmt_keys={"level": "levelname"})
    data = json.loads(formatter.format(_record(room_id="ROOM01", participant_id="p1")))
    assert data["room_id"] == "ROOM01"
    assert data["participant_id"] == "p1"

def test_exception_info_is_rendered():
    formatter = JSONLogFormatter()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()
    data = json.loads(formatter.format(record))
    assert "RuntimeError: boom" in data["exc_info"]
