"""Auth: JWT bearer tokens, password hashing and the group-membership guard."""
from datetime import timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from settleup.config import SECRET_KEY, ACCESS_TOKEN_EXPIRE_MINUTES, utcnow
from settleup.database import get_db
from settleup.models import User, Group

ALGORITHM = "HS256"

# pbkdf2_sha256 has no 72-byte password limit and no native backend.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
security = HTTPBearer(auto_error=False)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": str(user_id), "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )
    if not credentials:
        raise unauthorized
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
    except JWTError:
        raise unauthorized
    if user_id is None:
        raise unauthorized
    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        raise unauthorized
    return user


def get_member_group(db: Session, group_id: int, user: User) -> Group:
    """Load a group the user belongs to, or fail with 404/403."""
    group = db.query(Group).filter(Group.id == group_id).first()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    if user not in group.members:
        raise HTTPException(status_code=403, detail="Not a member of this group")
    return group
