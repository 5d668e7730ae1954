"""
Chat Relay Configuration

환경 변수를 통한 설정 관리
"""

from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """Chat Relay 설정"""

    # Application
    app_name: str = "Chat Relay"
    version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3001

    # Database - MongoDB
    mongo_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "chatApp"
    store_backend: str = "mongo"  # mongo | memory

    # JWT
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_hours: int = 24

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Chat
    global_room_name: str = "Global"
    serialize_room_writes: bool = True
    verify_room_membership: bool = False
    websocket_require_auth: bool = False

    # Logging
    log_dir: str = "logs"
    log_to_file: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
