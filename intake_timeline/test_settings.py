from .settings import Settings


def test_origins_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("INTAKE_ALLOWED_ORIGINS", "https://a.example, https://b.example ,")

    assert Settings().allowed_origins == ["https://a.example", "https://b.example"]


def test_unknown_log_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("INTAKE_LOG_LEVEL", "chatty")

    assert Settings().log_level == "INFO"


def test_defaults(monkeypatch):
    monkeypatch.delenv("INTAKE_DRAFT_TTL_SECONDS", raising=False)
    monkeypatch.delenv("INTAKE_FIRESTORE_ENABLED", raising=False)
    settings = Settings(_env_file=None)

    assert settings.draft_ttl_seconds == 3600
    assert settings.firestore_enabled is False
