"""Тесты проверки доступа."""
import pytest

from pushr.auth import AuthGate
from pushr.config import AuthConfig
from pushr.errors import NotConfigured, Unauthorized


class TestTokenScheme:
    """Режим общего токена."""

    @pytest.fixture
    def gate(self) -> AuthGate:
        return AuthGate(AuthConfig(scheme="token", token="s3cret"))

    def test_valid_token(self, gate):
        gate.check(token="s3cret")

    @pytest.mark.parametrize("token", [None, "", "wrong", "s3cret "])
    def test_invalid_token(self, gate, token):
        with pytest.raises(Unauthorized):
            gate.check(token=token)

    def test_credentials_do_not_replace_token(self, gate):
        with pytest.raises(Unauthorized):
            gate.check(credentials=("admin", "s3cret"))

    def test_token_not_configured(self):
        gate = AuthGate(AuthConfig(scheme="token"))

        with pytest.raises(NotConfigured):
            gate.check(token="anything")


class TestBasicScheme:
    """Режим логина и пароля."""

    @pytest.fixture
    def gate(self) -> AuthGate:
        return AuthGate(AuthConfig(scheme="basic", username="admin", password="pa55"))

    def test_valid_credentials(self, gate):
        gate.check(credentials=("admin", "pa55"))

    @pytest.mark.parametrize("credentials", [None, ("admin", "nope"), ("root", "pa55"), ("", "")])
    def test_invalid_credentials(self, gate, credentials):
        with pytest.raises(Unauthorized):
            gate.check(credentials=credentials)

    def test_token_does_not_replace_credentials(self, gate):
        with pytest.raises(Unauthorized):
            gate.check(token="pa55")

    @pytest.mark.parametrize("auth", [
        AuthConfig(scheme="basic", username="admin"),
        AuthConfig(scheme="basic", password="pa55"),
        None,
    ])
    def test_not_configured(self, auth):
        with pytest.raises(NotConfigured):
            AuthGate(auth).check(credentials=("admin", "pa55"))
