from typing import List

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    secret_key: str = "dev-secret-change-me"
    algorithm: str = "HS256"
    debug: bool = False
    cors_origins: List[str] = ["http://localhost:3000"]  # Next.js 개발 서버

    # 채팅 메시지 제한
    max_message_length: int = 2000
    preview_length: int = 100

    # 입장 시 시스템 환영 메시지
    welcome_message_enabled: bool = True
    system_sender_name: str = "ระบบ"

    # 유휴 채팅방 정리 (0이면 비활성화)
    room_idle_ttl_seconds: int = 86400
    reaper_interval_seconds: int = 300

    # 연결별 송신 큐 크기 (초과 시 연결 종료)
    outbox_max_size: int = 1000
    # 새 대화 알림 중복 방지 기록 수
    announced_cache_size: int = 10000

    # 로그 파일 디렉토리 (비어 있으면 콘솔만 사용)
    log_dir: str = ""

    class Config:
        env_file = ".env"


settings = Settings()
