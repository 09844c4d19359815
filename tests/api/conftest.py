import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from app.happypath.main import app
from app.happypath.api.auth import get_current_user
from app.happypath.api.utilities.limiter import limiter


@pytest.fixture
def client(monkeypatch):
    """
    Lifespan çalıştırılmadan (veritabanı ve Redis olmadan) uygulamaya istek atan test istemcisi.
    Servisler testlerde dependency_overrides ile mock'lanır.
    """
    monkeypatch.setattr(limiter, "enabled", False)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Verilen kullanıcıyı oturum açmış kullanıcı olarak enjekte eder."""
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login


@pytest.fixture
def mock_service():
    """Bir servis fabrikasını AsyncMock ile değiştirir ve mock'u döndürür."""
    def _mock(factory):
        service = AsyncMock()
        app.dependency_overrides[factory] = lambda: service
        return service
    return _mock
