"""Проверка доступа ко всем маршрутам."""
import hmac
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from pushr.config import AppConfig, AuthConfig
from pushr.errors import NotConfigured, Unauthorized


TOKEN_HEADER = "X-Pushr-Token"


def _same(given: Optional[str], expected: str) -> bool:
    if given is None:
        return False
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


class AuthGate:
    """Один из двух режимов: общий токен или логин/пароль."""

    def __init__(self, auth: Optional[AuthConfig]):
        self.auth = auth

    @property
    def scheme(self) -> Optional[str]:
        return self.auth.scheme if self.auth else None

    def configured(self) -> bool:
        if self.auth is None:
            return False
        if self.auth.scheme == "token":
            return bool(self.auth.token)
        return bool(self.auth.username) and bool(self.auth.password)

    def check(
        self,
        token: Optional[str] = None,
        credentials: Optional[Tuple[str, str]] = None,
    ) -> None:
        """Выбросить NotConfigured или Unauthorized, если доступ запрещен."""
        if not self.configured():
            raise NotConfigured("Not configured")

        if self.auth.scheme == "token":
            if not _same(token, self.auth.token):
                raise Unauthorized("Not authorized")
            return

        if credentials is None:
            raise Unauthorized("Not authorized")
        username, password = credentials
        # Сравниваем обе части, чтобы время ответа не зависело от логина
        user_ok = _same(username, self.auth.username)
        password_ok = _same(password, self.auth.password)
        if not (user_ok and password_ok):
            raise Unauthorized("Not authorized")


basic_security = HTTPBasic(auto_error=False)


async def require_auth(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_security),
) -> None:
    """FastAPI-зависимость, которая навешивается на все приложение."""
    gate: AuthGate = request.app.state.gate
    config: AppConfig = request.app.state.config
    token = request.headers.get(TOKEN_HEADER) or request.query_params.get("token")
    pair = (credentials.username, credentials.password) if credentials else None
    try:
        gate.check(token=token, credentials=pair)
    except NotConfigured as e:
        raise HTTPException(status_code=503, detail=e.message)
    except Unauthorized as e:
        headers = None
        if gate.scheme == "basic":
            headers = {"WWW-Authenticate": f'Basic realm="[pushr] {config.application}"'}
        raise HTTPException(status_code=401, detail=e.message, headers=headers)
