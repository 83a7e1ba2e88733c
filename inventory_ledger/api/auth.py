import logging
from datetime import datetime

from fastapi import APIRouter, Cookie, Depends, Header, Response
from pydantic import Field
from sqlalchemy.orm import Session

from inventory_ledger import errors
from inventory_ledger.config import settings
from inventory_ledger.database import get_db
from inventory_ledger.models.user import Role, User
from inventory_ledger.schemas.common import CamelModel
from inventory_ledger.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginRequest(CamelModel):
    username: str
    password: str


class UserOut(CamelModel):
    id: str
    username: str
    display_name: str
    role: str
    active: bool = True
    created_at: datetime | None = None


class LoginResponse(CamelModel):
    token: str
    user: UserOut


class CreateUserRequest(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=4)
    display_name: str = ""
    role: str = Role.STAFF


class UpdateUserRequest(CamelModel):
    display_name: str | None = None
    role: str | None = None


class ChangePasswordRequest(CamelModel):
    password: str = Field(min_length=4)


class ActivityLogOut(CamelModel):
    id: str
    user_id: str
    username: str
    action: str
    detail: str
    created_at: datetime | None = None


def get_current_user(
    token: str | None = Cookie(default=None, alias="token"),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: user from the JWT cookie or an ``Authorization: Bearer`` header."""
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    if not token:
        raise errors.Unauthorized("Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise errors.Unauthorized("Invalid or expired token")
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.active:
        raise errors.Unauthorized("User not found or disabled")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.ADMIN:
        raise errors.Forbidden("Admin only")
    return user


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    if not user:
        logger.info("Failed login for '%s'", data.username)
        raise errors.Unauthorized("Invalid username or password")
    token = auth_service.create_access_token(user.id, user.username, user.role)
    response.set_cookie(
        "token", token, httponly=True, samesite="lax", max_age=3600 * settings.ACCESS_TOKEN_EXPIRE_HOURS
    )
    auth_service.log_activity(db, user, "login")
    return {"token": token, "user": user}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/change-password")
def change_own_password(
    data: ChangePasswordRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    user.password_hash = auth_service.hash_password(data.password)
    db.commit()
    auth_service.log_activity(db, user, "change_password")
    return {"ok": True}


@router.get("/users", response_model=list[UserOut])
def list_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return auth_service.list_users(db)


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(data: CreateUserRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    u = auth_service.create_user(db, data.username, data.password, data.display_name, data.role)
    auth_service.log_activity(db, admin, "create_user", detail=f"Created user: {data.username}")
    return u


@router.patch("/users/{user_id}", response_model=UserOut)
def update_user(
    user_id: str, data: UpdateUserRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise errors.NotFound("User not found")
    if data.role is not None and data.role not in Role.ALL:
        raise errors.ValidationError(f"Unknown role '{data.role}'")
    if data.display_name is not None:
        target.display_name = data.display_name
    if data.role is not None:
        target.role = data.role
    db.commit()
    db.refresh(target)
    auth_service.log_activity(db, admin, "update_user", detail=f"Updated {target.username}: role={target.role}")
    return target


@router.patch("/users/{user_id}/active", response_model=UserOut)
def toggle_user_active(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise errors.NotFound("User not found")
    if target.id == admin.id:
        raise errors.ValidationError("Cannot disable yourself")
    target = auth_service.set_user_active(db, target.id, not target.active)
    status = "enabled" if target.active else "disabled"
    auth_service.log_activity(db, admin, "toggle_user", detail=f"{target.username} {status}")
    return target


@router.post("/users/{user_id}/reset-password")
def reset_password(
    user_id: str, data: ChangePasswordRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise errors.NotFound("User not found")
    target.password_hash = auth_service.hash_password(data.password)
    db.commit()
    auth_service.log_activity(db, admin, "reset_password", detail=f"Reset password for {target.username}")
    return {"ok": True}


@router.get("/activity", response_model=list[ActivityLogOut])
def activity_logs(
    limit: int = 100,
    user_id: str | None = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return auth_service.get_activity_logs(db, limit=limit, user_id=user_id)
