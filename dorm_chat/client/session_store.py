"""
Client Session Store

게스트 위젯의 localStorage(`chatSessionId`, `chatUserName`)에 해당하는 파일 저장소입니다.
서버가 발급한 세션 토큰(채팅방 ID)을 보관해 재시작 후에도 같은 대화를 재개합니다.
"""

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

SESSION_ID_KEY = "chatSessionId"
USER_NAME_KEY = "chatUserName"


@dataclass(frozen=True)
class GuestSession:
    room_id: str
    name: str


class ClientSessionStore:
    """게스트 세션 파일 저장소"""

    def __init__(self, path: os.PathLike):
        self.path = Path(path)

    def load(self) -> Optional[GuestSession]:
        """저장된 세션. 없거나 손상된 경우 None"""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (ValueError, OSError):
            return None

        room_id = data.get(SESSION_ID_KEY)
        name = data.get(USER_NAME_KEY)
        if not isinstance(room_id, str) or not room_id or not isinstance(name, str):
            return None
        return GuestSession(room_id=room_id, name=name)

    def save(self, session: GuestSession):
        """임시 파일에 쓴 뒤 교체 (중간 상태의 파일을 남기지 않음)"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({SESSION_ID_KEY: session.room_id, USER_NAME_KEY: session.name}, ensure_ascii=False)

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".chat-session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def clear(self):
        """새 대화 시작 (로그아웃 버튼)"""
        self.path.unlink(missing_ok=True)

    def join_event(self, name: Optional[str] = None) -> Dict[str, Any]:
        """
        join_private_chat 프레임 생성.

        저장된 세션이 있으면 roomId를 포함해 기존 대화를 재개합니다.
        """
        session = self.load()
        data: Dict[str, Any] = {"name": name or (session.name if session else "Guest")}
        if session is not None:
            data["roomId"] = session.room_id
        return {"type": "join_private_chat", "data": data}

    def remember(self, joined_event: Dict[str, Any], name: str) -> GuestSession:
        """서버의 "joined" 이벤트로 받은 roomId를 저장합니다."""
        if joined_event.get("type") != "joined":
            raise ValueError(f"Expected a 'joined' event, got {joined_event.get('type')!r}")

        session = GuestSession(room_id=joined_event["data"]["roomId"], name=name)
        self.save(session)
        return session

    def start_new_conversation(self) -> Dict[str, Any]:
        """저장된 세션을 지우고 현재 방에서 나가는 leave_room 프레임을 반환합니다."""
        self.clear()
        return {"type": "leave_room", "data": {}}
