import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from inventory_ledger import errors
from inventory_ledger.config import settings
from inventory_ledger.models.user import ActivityLog, Role, User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def create_access_token(user_id: str, username: str, role: str) -> str:
    payload = {
        "sub": user_id,
        "username": username,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None


def authenticate(db: Session, username: str, password: str) -> User | None:
    user = db.query(User).filter(User.username == username, User.active == True).first()  # noqa: E712
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_id(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def create_user(
    db: Session, username: str, password: str, display_name: str = "", role: str = Role.STAFF
) -> User:
    if role not in Role.ALL:
        raise errors.ValidationError(f"Unknown role '{role}'")
    if db.query(User).filter(User.username == username).first():
        raise errors.ValidationError(f"Username '{username}' already exists")
    user = User(
        username=username,
        display_name=display_name or username,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


def set_user_active(db: Session, user_id: str, active: bool) -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise errors.NotFound(f"User {user_id} not found")
    user.active = active
    db.commit()
    db.refresh(user)
    return user


def ensure_default_admin(db: Session) -> None:
    """Create the configured admin user if no users exist."""
    if db.query(User).count() == 0:
        create_user(
            db,
            username=settings.DEFAULT_ADMIN_USERNAME,
            password=settings.DEFAULT_ADMIN_PASSWORD,
            display_name="Admin",
            role=Role.ADMIN,
        )
        logger.warning("Created default admin user '%s'; change its password", settings.DEFAULT_ADMIN_USERNAME)


# Activity logging

def log_activity(db: Session, user: User, action: str, detail: str = "") -> None:
    db.add(ActivityLog(user_id=user.id, username=user.username, action=action, detail=detail))
    db.commit()


def get_activity_logs(db: Session, limit: int = 100, user_id: str | None = None) -> list[ActivityLog]:
    q = db.query(ActivityLog)
    if user_id:
        q = q.filter(ActivityLog.user_id == user_id)
    return q.order_by(ActivityLog.created_at.desc()).limit(limit).all()
