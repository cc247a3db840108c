import pytest

from dorm_chat.core.errors import InvalidEvent
from dorm_chat.schemas.events import JoinPrivateChat, OpenRoom, SendMessage, parse_client_event


class TestParseClientEvent:
    """수신 프레임 검증 테스트"""

    def test_join_private_chat_with_camel_case(self):
        event = parse_client_event({"type": "join_private_chat", "data": {"name": " Somchai ", "roomId": "abc"}})

        assert isinstance(event, JoinPrivateChat)
        assert event.name == "Somchai"
        assert event.room_id == "abc"

    def test_send_message_fields(self):
        event = parse_client_event({
            "type": "send_message",
            "data": {"message": "hi", "isAdmin": True, "clientMessageId": "c-1", "extra": 1},
        })

        assert isinstance(event, SendMessage)
        assert event.is_admin is True
        assert event.client_message_id == "c-1"

    @pytest.mark.parametrize("raw", [
        None,
        "text",
        {"data": {}},
        {"type": "", "data": {}},
        {"type": "send_message", "data": "not-a-dict"},
    ])
    def test_malformed_frames(self, raw):
        with pytest.raises(InvalidEvent):
            parse_client_event(raw)

    def test_unknown_event_type(self):
        with pytest.raises(InvalidEvent) as exc_info:
            parse_client_event({"type": "leave_room", "data": {}})

        assert exc_info.value.details == {"type": "leave_room"}

    def test_invalid_payload_lists_errors(self):
        with pytest.raises(InvalidEvent) as exc_info:
            parse_client_event({"type": "send_message", "data": {}})

        error = exc_info.value.to_dict()
        assert error["error"] == "invalid_event"
        assert error["details"]["errors"][0]["field"] == "message"

    def test_blank_name_rejected(self):
        with pytest.raises(InvalidEvent):
            parse_client_event({"type": "join_private_chat", "data": {"name": "   "}})

    def test_open_room_requires_target(self):
        with pytest.raises(InvalidEvent):
            parse_client_event({"type": "open_room", "data": {"name": "x"}})

        event = parse_client_event({"type": "open_room", "data": {"tenantId": "7"}})
        assert isinstance(event, OpenRoom)
        assert event.tenant_id == "7"
