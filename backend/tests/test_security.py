"""
安全模块单元测试
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends, FastAPI
from httpx import AsyncClient, ASGITransport
from jose import jwt

from core import security
from core.errors import register_exception_handlers
from core.security import (
    create_token,
    decode_token,
    get_current_user,
    get_optional_user,
    require_roles,
    TokenData
)


class TestJWT:
    """JWT 令牌测试"""

    def test_create_and_decode(self):
        token = create_token(TokenData(user_id=7, role="faculty", email="f@campus.test"))

        data = decode_token(token)

        assert data.user_id == 7
        assert data.role == "faculty"
        assert data.email == "f@campus.test"

    def test_default_role_is_student(self):
        data = decode_token(create_token(TokenData(user_id=1)))
        assert data.role == "student"

    def test_expired_token(self):
        token = create_token(TokenData(user_id=1), expires_delta=timedelta(seconds=-1))
        assert decode_token(token) is None

    def test_invalid_token(self):
        assert decode_token("invalid.token.string") is None

    def test_wrong_token_type(self):
        payload = {
            "user_id": 1,
            "type": "refresh",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5)
        }
        token = jwt.encode(payload, security.settings.jwt_secret, algorithm=security.settings.jwt_algorithm)
        assert decode_token(token) is None

    def test_old_secret_accepted_during_rotation(self, monkeypatch):
        monkeypatch.setattr(security.settings, "jwt_secret", "previous-secret")
        token = create_token(TokenData(user_id=3))

        monkeypatch.setattr(security.settings, "jwt_secret", "current-secret")
        assert decode_token(token) is None

        monkeypatch.setattr(security.settings, "jwt_secret_old", "previous-secret")
        assert decode_token(token).user_id == 3


def build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/me")
    async def me(user: TokenData = Depends(get_current_user)):
        return {"user_id": user.user_id}

    @app.get("/maybe")
    async def maybe(user=Depends(get_optional_user)):
        return {"user_id": user.user_id if user else None}

    @app.get("/authors")
    async def authors(user: TokenData = Depends(require_roles("faculty", "staff"))):
        return {"role": user.role}

    return app


def bearer(role: str = "student", user_id: int = 1) -> dict:
    return {"Authorization": f"Bearer {create_token(TokenData(user_id=user_id, role=role))}"}


@pytest.mark.asyncio
class TestDependencies:
    """鉴权依赖测试"""

    async def test_current_user_requires_token(self):
        async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as ac:
            missing = await ac.get("/me")
            ok = await ac.get("/me", headers=bearer(user_id=9))

        assert missing.status_code == 401
        assert missing.json()["message"] == "请先登录"
        assert missing.headers["WWW-Authenticate"] == "Bearer"
        assert ok.json() == {"user_id": 9}

    async def test_optional_user(self):
        async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as ac:
            anonymous = await ac.get("/maybe")
            invalid = await ac.get("/maybe", headers={"Authorization": "Bearer broken"})
            known = await ac.get("/maybe", headers=bearer(user_id=4))

        assert anonymous.json() == {"user_id": None}
        assert invalid.status_code == 401
        assert known.json() == {"user_id": 4}

    @pytest.mark.parametrize("role,expected", [
        ("faculty", 200),
        ("staff", 200),
        ("admin", 200),
        ("student", 403),
    ])
    async def test_require_roles(self, role, expected):
        async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as ac:
            response = await ac.get("/authors", headers=bearer(role))

        assert response.status_code == expected
