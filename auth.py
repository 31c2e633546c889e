import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
import database
from schemas import Admin, AdminSummary

logger = logging.getLogger(__name__)

# Use pbkdf2_sha256 to avoid external bcrypt dependency issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class InvalidCredentials(Exception):
    pass


# =========
# Passwords
# =========

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# ======
# Tokens
# ======

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def get_current_admin(authorization: Optional[str] = Header(None)) -> dict:
    """Bearer-token guard for admin routes. Purely cryptographic, no lookups."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Access token required")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=403, detail="Invalid or expired token")
    admin_id = payload.get("sub")
    role = payload.get("role")
    if not admin_id or role != "admin":
        raise HTTPException(status_code=403, detail="Invalid or expired token")
    return {"id": admin_id, "role": role}


# ===========
# Credentials
# ===========

def find_admin_by_email(email: str) -> Optional[dict]:
    return database.get_document(database.COLL_ADMINS, {"email": email.strip().lower()})


def authenticate_admin(email: str, password: str) -> dict:
    """Return the admin document for valid credentials, else raise InvalidCredentials.

    Unknown email and wrong password are indistinguishable to the caller.
    """
    admin = find_admin_by_email(email)
    if admin is None:
        pwd_context.dummy_verify()
        raise InvalidCredentials()
    if not verify_password(password, admin.get("password_hash", "")):
        raise InvalidCredentials()
    return admin


def login(email: str, password: str) -> dict:
    admin = authenticate_admin(email, password)
    token = create_access_token({"sub": admin["id"], "role": "admin"})
    summary = AdminSummary(id=admin["id"], email=admin["email"], name=admin.get("name", ""))
    return {"token": token, "token_type": "bearer", "user": summary.model_dump()}


def create_admin(email: str, password: str, name: str) -> str:
    if find_admin_by_email(email):
        raise ValueError(f"Admin {email} already exists")
    admin = Admin(email=email, password_hash=get_password_hash(password), name=name)
    admin_id = database.create_document(database.COLL_ADMINS, admin)
    logger.info("Created admin %s", admin.email)
    return admin_id


def seed_admin_from_env():
    if not (config.ADMIN_EMAIL and config.ADMIN_PASSWORD):
        return
    if database.db is None:
        return
    if find_admin_by_email(config.ADMIN_EMAIL):
        return
    create_admin(config.ADMIN_EMAIL, config.ADMIN_PASSWORD, config.ADMIN_NAME)
