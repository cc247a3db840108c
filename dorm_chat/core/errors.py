from typing import Optional, Dict, Any
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int


# =============================================================================
# HTTP 예외 클래스들
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code  # status_code를 먼저 설정
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """인증 실패 예외"""
    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="authentication_error",
            message=message,
            details=details
        )


class AuthorizationException(BaseCustomException):
    """권한 부족 예외"""
    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="authorization_error",
            message=message,
            details=details
        )


class ResourceNotFoundException(BaseCustomException):
    """리소스를 찾을 수 없음 예외"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if message is None:
            message = f"{resource} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )


# =============================================================================
# 실시간 채팅 예외 클래스들
#
# WebSocket 경로에서 발생하며, 요청한 연결에게만 "error" 이벤트로 전달됩니다.
# 어떤 예외도 연결을 끊지 않습니다.
# =============================================================================

class ChatException(Exception):
    """채팅 프로토콜 예외 기본 클래스"""
    error = "chat_error"
    default_message = "Chat request rejected"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """예외를 "error" 이벤트 페이로드로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details
        }


class RoomNotFound(ChatException):
    """생성 정보 없이 존재하지 않는 채팅방에 입장 시도"""
    error = "room_not_found"
    default_message = "Chat room not found"


class RoomAccessDenied(ChatException):
    """신원과 맞지 않는 채팅방 입장 시도 (다른 입주자 방, 게스트의 입주자 방 등)"""
    error = "room_access_denied"
    default_message = "Unauthorized access to chat room"


class NotInRoom(ChatException):
    """채팅방 입장 전에 메시지 전송"""
    error = "not_in_room"
    default_message = "Join a chat room before sending messages"


class EmptyMessage(ChatException):
    """공백뿐인 메시지"""
    error = "empty_message"
    default_message = "Message must not be empty"


class MessageTooLong(ChatException):
    """최대 길이를 넘는 메시지"""
    error = "message_too_long"
    default_message = "Message is too long"


class InvalidEvent(ChatException):
    """알 수 없는 이벤트 또는 페이로드 검증 실패"""
    error = "invalid_event"
    default_message = "Invalid event payload"


class AdminRequired(ChatException):
    """관리자 전용 이벤트를 비관리자가 전송"""
    error = "admin_required"
    default_message = "Admin privileges required"


class AuthDowngraded(ChatException):
    """토큰 검증 실패로 익명 게스트로 강등 (치명적이지 않음)"""
    error = "auth_downgraded"
    default_message = "Token rejected, continuing as guest"


class PersistenceFailure(ChatException):
    """저장소 기록 실패 (실시간 전달은 계속됨)"""
    error = "persistence_failure"
    default_message = "Failed to persist chat data"


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_response(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """표준 에러 응답 생성"""
    return ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details
    )


def chat_room_not_found_error(room_id: Optional[str] = None):
    """채팅방을 찾을 수 없음 에러"""
    details = {"room_id": room_id} if room_id else None
    return ResourceNotFoundException("Chat room", details=details)


def invalid_token_error():
    """잘못된 토큰 에러"""
    return AuthenticationException("Invalid or expired token")
