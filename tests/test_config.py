import pytest

from gunslinger.app import TournamentApp
from gunslinger.config import IdConfig, TournamentConfig
from gunslinger.domain.players import TieBreak
from gunslinger.validators import validate_app


def test_from_env_reads_prefixed_variables(monkeypatch):
    monkeypatch.setenv("GUNSLINGER_STORAGE_BACKEND", "sqlalchemy")
    monkeypatch.setenv("GUNSLINGER_MAX_TABLES", "4")
    monkeypatch.setenv("GUNSLINGER_TIE_BREAK", "most_recent")
    monkeypatch.setenv("GUNSLINGER_LOCK_TIMEOUT", "5")
    monkeypatch.setenv("GUNSLINGER_PLAYER_ID_DIGITS", "4")
    monkeypatch.setenv("GUNSLINGER_ADMIN_ENABLE_AUDIT_LOGS", "no")

    config = TournamentConfig.from_env()

    assert config.storage.resolve_dsn() == "sqlite+aiosqlite:///./gunslinger.db"
    assert config.matching.max_tables == 4
    assert config.matching.tie_break == "most_recent"
    assert config.lock.timeout_seconds == 5.0
    assert config.ids.player_digits == 4
    assert config.admin.enable_audit_logs is False


def test_defaults_without_environment(monkeypatch):
    for name in ("GUNSLINGER_STORAGE_BACKEND", "GUNSLINGER_MAX_TABLES", "GUNSLINGER_TIE_BREAK"):
        monkeypatch.delenv(name, raising=False)

    config = TournamentConfig.from_env()

    assert config.storage.backend == "memory"
    assert config.storage.resolve_dsn() is None
    assert config.matching.max_tables == 10
    assert TieBreak(config.matching.tie_break) is TieBreak.LEAST_RECENT


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("GUNSLINGER_MAX_TABLES", "500"),
        ("GUNSLINGER_MAX_TABLES", "ten"),
        ("GUNSLINGER_TIE_BREAK", "random"),
        ("GUNSLINGER_LOCK_TIMEOUT", "0"),
        ("GUNSLINGER_STORAGE_BACKEND", "redis"),
    ],
)
def test_invalid_environment_is_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        TournamentConfig.from_env()


def test_validate_app_success():
    assert validate_app(TournamentApp(TournamentConfig())) == []


def test_validate_app_detects_bad_id_format():
    config = TournamentConfig(ids=IdConfig(player_prefix="T", match_prefix="T", match_digits=0))
    issues = validate_app(TournamentApp(config))
    assert any("different prefixes" in issue for issue in issues)
    assert any("width for matchs" in issue for issue in issues)


def test_snapshot_reports_configuration():
    snapshot = TournamentApp(TournamentConfig()).snapshot()
    assert snapshot["storage"] == "memory"
    assert snapshot["player_id_format"] == "P000"
