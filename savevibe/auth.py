import logging

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request, status

from savevibe.schemas import LoginRequest, PublicUser, User, UserCreate

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"

router = APIRouter(prefix="/api/auth", tags=["auth"])


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def get_storage(request: Request):
    return request.app.state.storage


def get_current_user(request: Request, storage=Depends(get_storage)) -> User:
    user_id = request.session.get(SESSION_USER_KEY)
    user = storage.get_user(user_id) if user_id is not None else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def register_user(storage, data: UserCreate) -> User:
    return storage.create_user(
        username=data.username,
        password_hash=hash_password(data.password),
        nickname=data.nickname,
        avatar_type=data.avatar_type,
        age_range=data.age_range,
    )


@router.post("/register", response_model=PublicUser, status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, request: Request, storage=Depends(get_storage)):
    if storage.get_user_by_username(data.username):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    user = register_user(storage, data)
    request.session[SESSION_USER_KEY] = user.id
    logger.info("Registered user %s", user.id)
    return PublicUser.model_validate(user)


@router.post("/login", response_model=PublicUser)
async def login(data: LoginRequest, request: Request, storage=Depends(get_storage)):
    user = storage.get_user_by_username(data.username)
    if user is None or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    request.session[SESSION_USER_KEY] = user.id
    return PublicUser.model_validate(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request):
    request.session.clear()


@router.get("/me", response_model=PublicUser)
async def me(user: User = Depends(get_current_user)):
    return PublicUser.model_validate(user)
