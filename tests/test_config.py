import pytest

from sns_trigger.config import Settings, get_env_var


def test_get_env_var_requires_value(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SNS_TRIGGER_UNSET", raising=False)
    with pytest.raises(ValueError, match="SNS_TRIGGER_UNSET"):
        get_env_var("SNS_TRIGGER_UNSET")
    assert get_env_var("SNS_TRIGGER_UNSET", "fallback") == "fallback"


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "SERVICE_NAME",
        "STORAGE_PARAMETER_NAME",
        "RAM_REGION",
        "ASSUME_ROLE_DURATION_SECONDS",
        "PUBLISH_MAX_CONCURRENCY",
        "LOG_LEVEL",
        "OFFLOAD_REQUIRE_TENANT",
        "OFFLOAD_DEFAULT_NAMESPACE",
    ):
        monkeypatch.delenv(name, raising=False)

    assert Settings.from_env() == Settings()


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SERVICE_NAME", "orders")
    monkeypatch.setenv("STORAGE_PARAMETER_NAME", "/shared/other-storage")
    monkeypatch.setenv("RAM_REGION", "eu-west-1")
    monkeypatch.setenv("ASSUME_ROLE_DURATION_SECONDS", "900")
    monkeypatch.setenv("PUBLISH_MAX_CONCURRENCY", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("OFFLOAD_REQUIRE_TENANT", "true")
    monkeypatch.setenv("OFFLOAD_DEFAULT_NAMESPACE", "shared")

    assert Settings.from_env() == Settings(
        service_name="orders",
        storage_parameter_name="/shared/other-storage",
        ram_region="eu-west-1",
        assume_role_duration_seconds=900,
        max_concurrency=5,
        log_level="DEBUG",
        require_tenant_for_offload=True,
        default_namespace="shared",
    )
