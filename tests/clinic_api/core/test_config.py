import pytest

from clinic_api.core import config


def test_validate_runtime_config_accepts_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'development')
    monkeypatch.setattr(config, 'REFERENCE_TIMEZONE', 'Asia/Karachi')
    monkeypatch.setattr(config, 'ACTIVITY_WINDOW_POLICY', 'forward')
    monkeypatch.setattr(config, 'ACTIVITY_WINDOW_MINUTES', 60)

    config.validate_runtime_config()


@pytest.mark.parametrize(
    ('name', 'value'),
    [
        ('REFERENCE_TIMEZONE', 'Mars/Olympus_Mons'),
        ('ACTIVITY_WINDOW_POLICY', 'sideways'),
        ('ACTIVITY_WINDOW_MINUTES', 0),
    ],
)
def test_validate_runtime_config_rejects_invalid_activity_settings(
    monkeypatch: pytest.MonkeyPatch, name: str, value
) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'development')
    monkeypatch.setattr(config, name, value)

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()


def test_production_requires_email_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'EMAIL_USER', '')
    monkeypatch.setattr(config, 'EMAIL_PASS', '')

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()
