"""JSON 行日志。

每条记录一行 JSON：ts / level / name / msg，再合并调用方通过
``extra={"extra": {...}}`` 传入的结构化字段（trace_id、session_id、operation 等）。

开启 log_redact_content 后，msg 以及携带用户数据或模型回复的字段
（见 CONTENT_FIELDS）会被截断，ID、计数、耗时等字段保持原样。
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from plot_agent.config.settings import settings


LOGGER_NAME = "plot_agent"
LOG_FILENAME = "plot_agent.log"
REDACT_LENGTH = 64

# 可能包含原始数据、指令或模型回复的字段
CONTENT_FIELDS = frozenset({"reply_preview", "detail", "error", "raw_input", "instruction"})


def _truncate(value: Any) -> Any:
    if isinstance(value, str):
        return value[:REDACT_LENGTH]
    if isinstance(value, (list, tuple)):
        return [_truncate(v) for v in value]
    return value


class JsonFormatter(logging.Formatter):
    def __init__(self, redact: bool = False):
        super().__init__()
        self.redact = redact

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage() or ""
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg[:REDACT_LENGTH] if self.redact else msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                # 保留字段不允许被覆盖
                if key in payload:
                    continue
                payload[key] = _truncate(value) if self.redact and key in CONTENT_FIELDS else value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[str] = None,
    redact: Optional[bool] = None,
) -> logging.Logger:
    """为 plot_agent 挂上 JSON 文件 handler；同一文件不会重复挂载。"""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or settings.log_level).upper())
    path = Path(log_dir if log_dir is not None else settings.log_dir) / LOG_FILENAME
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(path):
            return logger
    path.parent.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(path, encoding="utf-8")
    fh.setFormatter(JsonFormatter(redact=settings.log_redact_content if redact is None else redact))
    logger.addHandler(fh)
    return logger


logger = setup_logger()
