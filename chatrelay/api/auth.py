from fastapi import APIRouter, Depends, status

from chatrelay.api.dependencies import get_session_store
from chatrelay.database.base import SessionStore
from chatrelay.schemas.user import LoginRequest, RegisterRequest, Token
from chatrelay.services import auth_service

router = APIRouter(tags=["Authentication"])


@router.post("/register", response_model=Token, status_code=status.HTTP_200_OK)
async def register(
        user_data: RegisterRequest,
        store: SessionStore = Depends(get_session_store)
) -> Token:
    """
    사용자 회원가입

    - 사용자명 중복 시 409
    - Global 채팅방이 없으면 생성하고 새 사용자를 가입시킵니다
    """
    user = await auth_service.register(store, user_data.username, user_data.password)
    return Token(jwt_token=auth_service.issue_token(user))


@router.post("/login", response_model=Token)
async def login(
        user_data: LoginRequest,
        store: SessionStore = Depends(get_session_store)
) -> Token:
    """사용자 로그인 (JSON 형식)"""
    user = await auth_service.authenticate(store, user_data.username, user_data.password)
    return Token(jwt_token=auth_service.issue_token(user))
