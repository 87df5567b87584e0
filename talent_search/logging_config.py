"""구조화된 로그 설정 - 텍스트/JSON 포매터."""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# logger.info(..., extra={...})로 넘긴 검색 컨텍스트 중 JSON에 실을 키
CONTEXT_FIELDS = ("user_id", "query", "content_type", "degraded", "results", "entry_id")


class JsonFormatter(logging.Formatter):
    """로그 한 줄을 JSON 객체 하나로 출력한다.

    extra로 전달된 검색 컨텍스트(user_id, query 등)는 최상위 키로 포함된다.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_format: bool = False):
    """루트 로거에 stdout 핸들러 하나를 설치한다.

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR).
        json_format: True이면 JsonFormatter, False이면 텍스트 포매터.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    root.addHandler(handler)

    # 임베딩 호출마다 요청 로그가 찍히므로 낮춘다
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def setup_logging_from_env():
    """TALENT_LOG_LEVEL / TALENT_LOG_FORMAT 환경 변수로 로깅을 설정한다."""
    setup_logging(
        level=os.environ.get("TALENT_LOG_LEVEL", "INFO"),
        json_format=os.environ.get("TALENT_LOG_FORMAT", "text") == "json",
    )
