"""
구조화된 로깅 시스템

JSON 형식의 구조화된 로그를 제공하여 로그 분석과 모니터링을 용이하게 합니다.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Optional
from contextvars import ContextVar
from pathlib import Path

from dorm_chat.core.config import settings

# 컨텍스트 변수로 연결별 추적 정보 저장
connection_id_var: ContextVar[Optional[str]] = ContextVar('connection_id', default=None)
room_id_var: ContextVar[Optional[str]] = ContextVar('room_id', default=None)

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName', 'message', 'asctime'
}


class StructuredFormatter(logging.Formatter):
    """구조화된 JSON 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        # 기본 로그 정보
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # 컨텍스트 정보 추가
        connection_id = connection_id_var.get()
        if connection_id:
            log_data["connection_id"] = connection_id

        room_id = room_id_var.get()
        if room_id:
            log_data["room_id"] = room_id

        # 예외 정보 추가
        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        # 추가 데이터 (extra 필드)
        extra_data = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith('_')
        }
        if extra_data:
            log_data["extra"] = extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging():
    """로깅 시스템 초기화"""

    # 루트 로거 설정
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    # 기존 핸들러 제거
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # 콘솔 핸들러
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    if settings.debug:
        # 개발 환경: 사람이 읽기 쉬운 형식
        console_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
    else:
        # 프로덕션 환경: 구조화된 JSON 형식
        console_formatter = StructuredFormatter()

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        # 파일 핸들러 (항상 구조화된 형식)
        file_handler = logging.FileHandler(log_dir / "chat.log", encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

        # 에러 전용 파일 핸들러
        error_handler = logging.FileHandler(log_dir / "error.log", encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(error_handler)

    # 외부 라이브러리 로그 레벨 조정
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """구조화된 로거 인스턴스 반환"""
    return logging.getLogger(name)


def set_connection_context(connection_id: str, room_id: Optional[str] = None):
    """연결 컨텍스트 설정"""
    connection_id_var.set(connection_id)
    if room_id:
        room_id_var.set(room_id)


def clear_connection_context():
    """연결 컨텍스트 초기화"""
    connection_id_var.set(None)
    room_id_var.set(None)


def log_authentication_event(
    logger: logging.Logger,
    event: str,
    subject: Optional[str] = None,
    role: Optional[str] = None,
    success: bool = True,
    **extra
):
    """인증 이벤트 로그"""
    log = logger.info if success else logger.warning
    log(
        f"Auth {event} - {'Success' if success else 'Failed'}",
        extra={
            "event_type": "authentication",
            "event": event,
            "subject": subject,
            "role": role,
            "success": success,
            **extra
        }
    )


def log_websocket_event(
    logger: logging.Logger,
    event: str,
    connection_id: str,
    room_id: Optional[str],
    **extra
):
    """WebSocket 이벤트 로그"""
    logger.info(
        f"WebSocket {event} - Connection {connection_id} in Room {room_id}",
        extra={
            "event_type": "websocket",
            "event": event,
            "connection_id": connection_id,
            "room_id": room_id,
            **extra
        }
    )


def log_chat_error(
    logger: logging.Logger,
    error: str,
    connection_id: Optional[str] = None,
    room_id: Optional[str] = None,
    **extra
):
    """채팅 프로토콜 거부 로그"""
    logger.warning(
        f"Chat rejected: {error}",
        extra={
            "event_type": "chat_error",
            "error": error,
            "connection_id": connection_id,
            "room_id": room_id,
            **extra
        }
    )
