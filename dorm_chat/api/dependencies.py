"""
API Dependencies

FastAPI dependency functions for the chat gateway and authentication
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from dorm_chat.core.errors import AuthorizationException, invalid_token_error
from dorm_chat.models.identity import Identity
from dorm_chat.utils.auth import verify_token
from dorm_chat.websockets.gateway import ChatGateway

# OAuth2 설정 (토큰 발급은 외부 인증 서비스 담당)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_gateway(request: Request) -> ChatGateway:
    """앱에 등록된 채팅 게이트웨이"""
    return request.app.state.gateway


async def get_optional_identity(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Identity]:
    """토큰이 있으면 검증된 신원, 없으면 None"""
    if not token:
        return None
    identity = verify_token(token)
    if identity is None:
        raise invalid_token_error()
    return identity


async def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    """
    현재 인증된 관리자/입주자 신원을 반환합니다.

    Raises:
        AuthenticationException: 토큰이 없거나 유효하지 않은 경우
    """
    if identity is None:
        raise invalid_token_error()
    return identity


async def get_current_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """관리자 전용 엔드포인트"""
    if not identity.is_admin:
        raise AuthorizationException("Admin privileges required")
    return identity
