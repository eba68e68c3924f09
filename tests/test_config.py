from userapi.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    settings = Settings(_env_file=None)
    assert settings.port == 8080
    assert settings.database_url.startswith("postgresql://")
    assert "sslmode=disable" in settings.database_url


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("POOL_SIZE", "3")
    settings = Settings(_env_file=None)
    assert settings.database_url == "sqlite:///:memory:"
    assert settings.port == 9090
    assert settings.pool_size == 3
