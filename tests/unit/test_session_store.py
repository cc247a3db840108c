import json

import pytest

from dorm_chat.client.session_store import ClientSessionStore, GuestSession


class TestClientSessionStore:
    """게스트 세션 저장소 테스트"""

    def test_load_without_file(self, tmp_path):
        assert ClientSessionStore(tmp_path / "session.json").load() is None

    def test_save_and_load(self, tmp_path):
        store = ClientSessionStore(tmp_path / "nested" / "session.json")

        store.save(GuestSession(room_id="token-1", name="สมชาย"))

        assert store.load() == GuestSession(room_id="token-1", name="สมชาย")
        raw = json.loads((tmp_path / "nested" / "session.json").read_text(encoding="utf-8"))
        assert raw == {"chatSessionId": "token-1", "chatUserName": "สมชาย"}

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{broken", encoding="utf-8")

        assert ClientSessionStore(path).load() is None

    def test_join_event_resumes_saved_room(self, tmp_path):
        store = ClientSessionStore(tmp_path / "session.json")
        assert store.join_event("Somchai") == {"type": "join_private_chat", "data": {"name": "Somchai"}}

        store.save(GuestSession(room_id="token-1", name="Somchai"))

        assert store.join_event() == {
            "type": "join_private_chat",
            "data": {"name": "Somchai", "roomId": "token-1"},
        }

    def test_remember_joined_event(self, tmp_path):
        store = ClientSessionStore(tmp_path / "session.json")

        session = store.remember({"type": "joined", "data": {"roomId": "token-2"}}, "Somchai")

        assert session.room_id == "token-2"
        assert store.load() == session

        with pytest.raises(ValueError):
            store.remember({"type": "message", "data": {}}, "Somchai")

    def test_clear(self, tmp_path):
        store = ClientSessionStore(tmp_path / "session.json")
        store.save(GuestSession(room_id="token-1", name="Somchai"))

        store.clear()
        store.clear()

        assert store.load() is None

    def test_start_new_conversation(self, tmp_path):
        """새 대화: 세션 삭제 후 leave_room 프레임"""
        store = ClientSessionStore(tmp_path / "session.json")
        store.save(GuestSession(room_id="token-1", name="Somchai"))

        frame = store.start_new_conversation()

        assert frame == {"type": "leave_room", "data": {}}
        assert store.load() is None
        assert "roomId" not in store.join_event("Somchai")["data"]
