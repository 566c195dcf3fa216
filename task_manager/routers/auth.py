from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from task_manager import auth_service
from task_manager.auth import Identity, get_current_identity
from task_manager.database import get_session
from task_manager.schemas import AuthResponse, Message, ProfileUpdate, UserCreate, UserLogin, UserRead

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(user_in: UserCreate, db: Session = Depends(get_session)):
    """
    Registers a new user and returns the user with an access token.
    """
    result = auth_service.register(db, user_in.username, user_in.email, user_in.password)
    return AuthResponse(user=UserRead.model_validate(result.user), token=result.token)


@router.post("/login", response_model=AuthResponse)
def login_user(credentials: UserLogin, db: Session = Depends(get_session)):
    result = auth_service.login(db, credentials.email, credentials.password)
    return AuthResponse(user=UserRead.model_validate(result.user), token=result.token)


@router.post("/logout", response_model=Message)
def logout_user(identity: Identity = Depends(get_current_identity)):
    """
    Logout is handled client-side by deleting the JWT token.
    This endpoint simply provides a confirmation.
    """
    return Message(message="Logged out successfully. Please delete your token on the client.")


@router.get("/profile", response_model=UserRead)
def read_profile(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_session)):
    return UserRead.model_validate(auth_service.get_profile(db, identity.user_id))


@router.patch("/profile", response_model=UserRead)
def update_profile(
    profile_in: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_session),
):
    user = auth_service.update_profile(
        db,
        identity.user_id,
        username=profile_in.username,
        avatar=profile_in.avatar,
    )
    return UserRead.model_validate(user)
