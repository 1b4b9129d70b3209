import pytest
from jose import JWTError, jwt

from app.core.config import settings
from app.core.security import ALGO, create_access_token, token_subject
from conftest import auth


def test_access_token_names_the_user():
    assert token_subject(create_access_token("user-1")) == "user-1"


def test_expired_token():
    with pytest.raises(JWTError):
        token_subject(create_access_token("user-1", expires_minutes=-1))


def test_non_access_token_is_refused():
    token = jwt.encode({"sub": "user-1", "type": "refresh"}, settings.SECRET_KEY, algorithm=ALGO)
    with pytest.raises(JWTError):
        token_subject(token)


def test_inactive_user_is_rejected(client, demo, db):
    demo.other.is_active = False
    db.commit()
    assert client.get("/api/v1/bookings/anything", headers=auth(demo.other)).status_code == 401
    assert client.get("/api/v1/bookings/anything", headers={"Authorization": "Bearer junk"}).status_code == 401
