from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy.orm import Session
from ...core import auth, security
from ...core.timeutils import utc_now
from ...db.session import get_db
from ...db import models
from ...config import get_settings
from .. import deps


router = APIRouter(prefix="/auth", tags=["auth"])


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


def _user_payload(user: models.User) -> dict:
    return {"id": user.id, "email": user.email, "role": user.role, "name": user.full_name}


@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    user = auth.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    settings = get_settings()
    token = security.create_access_token(
        {"sub": str(user.id), "role": user.role.value},
        timedelta(minutes=settings.jwt_expire_min),
    )
    user.last_login_at = utc_now()
    db.commit()
    return TokenResponse(access_token=token, user=_user_payload(user))


@router.get("/me")
def me(current: models.User = Depends(deps.get_current_user)):
    return _user_payload(current)
