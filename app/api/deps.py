from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.security import token_subject
from app.models.user import User

bearer = HTTPBearer(auto_error=False)


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the acting user once at the edge; services receive it as an argument."""
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user = db.get(User, token_subject(creds.credentials))
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user
