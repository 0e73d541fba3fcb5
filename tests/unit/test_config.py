import pydantic
import pytest

from tutordesk.config import Settings, get_settings


@pytest.mark.unit
def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.page_size == 25
    assert settings.search_result_limit == 500
    assert settings.balance_sort_limit == 2000
    assert settings.bulk_batch_size == 100
    assert settings.query_timeout_seconds == 30.0
    assert settings.open_ledger_statuses == ["sent", "partial", "overdue"]
    assert settings.search_debounce_seconds == pytest.approx(0.3)


@pytest.mark.unit
def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PAGE_SIZE", "50")
    monkeypatch.setenv("SEARCH_DEBOUNCE_MS", "0")
    monkeypatch.setenv("OPEN_LEDGER_STATUSES", '["overdue"]')

    settings = Settings(_env_file=None)

    assert settings.page_size == 50
    assert settings.search_debounce_seconds == 0
    assert settings.open_ledger_statuses == ["overdue"]


@pytest.mark.unit
@pytest.mark.parametrize(
    "field, value",
    [
        ("page_size", 0),
        ("balance_sort_limit", -5),
        ("bulk_batch_size", 0),
        ("query_timeout_seconds", 0),
        ("search_debounce_ms", -1),
    ],
)
def test_invalid_limits_are_rejected(field, value):
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, **{field: value})


@pytest.mark.unit
def test_get_settings_is_cached():
    assert get_settings() is get_settings()
