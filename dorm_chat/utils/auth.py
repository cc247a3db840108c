from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import JWTError, jwt

from dorm_chat.core.config import settings
from dorm_chat.models.identity import Identity, IdentityKind

ACCESS_TOKEN_EXPIRE_MINUTES = 60


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """JWT 토큰을 디코드합니다. 검증 실패 시 None"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def verify_token(token: Optional[str]) -> Optional[Identity]:
    """
    인증 서브시스템이 발급한 토큰을 검증하고 참여자 신원을 반환합니다.

    Args:
        token: JWT 액세스 토큰 ("Bearer " 접두사 허용)

    Returns:
        Identity: 관리자 또는 입주자 신원, 검증 실패 시 None
    """
    if not token:
        return None

    if token.startswith("Bearer "):
        token = token.removeprefix("Bearer ").strip()

    payload = decode_access_token(token)
    if not payload:
        return None

    role = payload.get("role")
    subject = payload.get("sub") or payload.get("userId")
    name = payload.get("name")

    if role == IdentityKind.ADMIN.value and subject:
        return Identity(kind=IdentityKind.ADMIN, subject_id=str(subject), name=name)

    if role == IdentityKind.TENANT.value:
        tenant_id = payload.get("tenantId")
        if tenant_id:
            return Identity(kind=IdentityKind.TENANT, subject_id=str(tenant_id), name=name)

    # 알 수 없는 역할이거나 필수 클레임 누락
    return None
