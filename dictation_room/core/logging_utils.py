import logging
import json
import datetime as dt
from typing import Dict, Any, Optional, Set

# LogRecord attributes that never count as "extra" context
LOG_RECORD_BUILTIN_ATTRS: Set[str] = {
    "args", "asctime", "created", "exc_info", "exc_text", "filename",
    "funcName", "levelname", "levelno", "lineno", "module", "msecs",
    "message", "msg", "name", "pathname", "process", "processName",
    "relativeCreated", "stack_info", "thread", "threadName", "taskName",
}

class JSONLogFormatter(logging.Formatter):
    """
    Renders each record as one JSON object per line.

    `fmt_keys` maps output keys to LogRecord attribute names, e.g.
    {"level": "levelname", "logger": "name"}. Anything passed through
    `extra=` (room_id, participant_id, ...) is appended as-is.
    """
    def __init__(self, *, fmt_keys: Optional[Dict[str, str]] = None, datefmt: Optional[str] = None):
        super().__init__(datefmt=datefmt)
        self.fmt_keys = fmt_keys if fmt_keys is not None else {}

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self._prepare_log_dict(record), default=str)

    def _timestamp(self, record: logging.LogRecord) -> str:
        if self.datefmt:
            return self.formatTime(record, self.datefmt)
        return dt.datetime.fromtimestamp(record.created, tz=dt.timezone.utc).isoformat()

    def _prepare_log_dict(self, record: logging.LogRecord) -> Dict[str, Any]:
        base_fields: Dict[str, Any] = {
            "message": record.getMessage(),
            "timestamp": self._timestamp(record),
        }
        if record.exc_info:
            base_fields["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            base_fields["stack_info"] = self.formatStack(record.stack_info)

        log_dict: Dict[str, Any] = {}
        for out_key, attr_name in self.fmt_keys.items():
            if attr_name in base_fields:
                log_dict[out_key] = base_fields.pop(attr_name)
            else:
                value = getattr(record, attr_name, None)
                if value is not None:
                    log_dict[out_key] = value
        log_dict.update(base_fields)

        for key, value in record.__dict__.items():
            if key not in LOG_RECORD_BUILTIN_ATTRS and key not in log_dict:
                log_dict[key] = value

        return log_dict
