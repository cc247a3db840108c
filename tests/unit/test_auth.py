from datetime import timedelta

from dorm_chat.models.identity import IdentityKind
from dorm_chat.utils.auth import create_access_token, decode_access_token, verify_token


class TestVerifyToken:
    """토큰 검증 테스트"""

    def test_admin_token(self, admin_token):
        identity = verify_token(admin_token)

        assert identity.kind == IdentityKind.ADMIN
        assert identity.subject_id == "admin-1"
        assert identity.name == "Admin One"

    def test_tenant_token_uses_tenant_id(self, tenant_token):
        identity = verify_token(f"Bearer {tenant_token}")

        assert identity.kind == IdentityKind.TENANT
        assert identity.subject_id == "42"

    def test_expired_token(self):
        token = create_access_token({"sub": "admin-1", "role": "admin"}, expires_delta=timedelta(seconds=-1))

        assert decode_access_token(token) is None
        assert verify_token(token) is None

    def test_unknown_role_or_missing_claims(self):
        assert verify_token(create_access_token({"sub": "u1", "role": "landlord"})) is None
        assert verify_token(create_access_token({"sub": "u1", "role": "tenant"})) is None
        assert verify_token(None) is None
        assert verify_token("garbage") is None
