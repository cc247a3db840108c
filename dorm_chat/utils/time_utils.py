"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """timezone 정보가 포함된 현재 UTC 시간"""
    return datetime.now(timezone.utc)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """datetime을 ISO 8601 문자열로 변환합니다. None은 그대로 반환합니다."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def truncate_preview(text: str, limit: int) -> str:
    """
    대화 목록 미리보기용으로 본문을 자릅니다.

    Examples:
        >>> truncate_preview("hello", 100)
        "hello"
        >>> truncate_preview("abcdef", 3)
        "abc..."
    """
    if len(text) > limit:
        return text[:limit] + "..."
    return text
