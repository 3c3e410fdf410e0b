from fastapi import APIRouter, Depends, HTTPException, Request
from ..schemas.users import RegisterIn, LoginIn, TokenOut, UserOut, MeOut, ActionOkOut
from ..crud import (
    create_user,
    get_user_by_login,
    get_user_by_id,
    verify_password,
    issue_session_token,
    revoke_session_token,
)
from ..sessions import get_current_user

router = APIRouter()


@router.post('/register', response_model=UserOut, status_code=201)
async def register(payload: RegisterIn):
    user = await create_user(payload.username, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=409, detail='Username or email already in use')
    return user


@router.post('/login', response_model=TokenOut)
async def login(payload: LoginIn, request: Request):
    user = await get_user_by_login(payload.username_or_email)
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail='Invalid credentials')

    token, _ = await issue_session_token(user.id, device_info=request.headers.get('user-agent'))
    return {'access_token': token, 'token_type': 'bearer', 'user': UserOut.model_validate(user)}


@router.post('/logout', response_model=ActionOkOut)
async def logout(current_user: dict = Depends(get_current_user)):
    await revoke_session_token(current_user['token_id'])
    return {'ok': True}


@router.get('/me', response_model=MeOut)
async def me(current_user: dict = Depends(get_current_user)):
    user = await get_user_by_id(current_user['id'])
    if not user:
        raise HTTPException(404, 'User not found')
    return user
