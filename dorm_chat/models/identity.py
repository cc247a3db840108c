from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any


class IdentityKind(str, Enum):
    GUEST = "guest"
    TENANT = "tenant"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """연결의 참여자 신원 (게스트 / 입주자 / 관리자)"""
    kind: IdentityKind
    subject_id: Optional[str] = None  # tenant_id 또는 admin user id, 게스트는 None
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.kind == IdentityKind.ADMIN

    @property
    def is_tenant(self) -> bool:
        return self.kind == IdentityKind.TENANT

    @property
    def is_guest(self) -> bool:
        return self.kind == IdentityKind.GUEST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "subjectId": self.subject_id,
            "name": self.name,
        }


ANONYMOUS_GUEST = Identity(kind=IdentityKind.GUEST)
