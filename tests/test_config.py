import pytest

from core.models import PasswordMode
from utils.config import DEFAULT_SECRET_LOG_PATH, Config

ENV_VARS = [
    "AD_SERVER", "AD_USERNAME", "AD_PASSWORD", "BASE_DN", "UPN_SUFFIX", "MAIL_DOMAIN",
    "PASSWORD_MODE", "FIXED_PASSWORD", "SECRET_LOG_KEY", "SECRET_LOG_PATH", "MAX_RECORDS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestADConfig:

    def test_missing_ad_vars(self, clean_env):
        clean_env.setenv("AD_SERVER", "ldaps://dc01.example.local")

        config = Config(load_env_file=False)

        assert not config.validate_ad_config()
        assert config.get_missing_ad_vars() == ["AD_USERNAME", "AD_PASSWORD", "BASE_DN"]

    def test_complete_ad_config(self, clean_env):
        clean_env.setenv("AD_SERVER", "ldaps://dc01.example.local")
        clean_env.setenv("AD_USERNAME", "EXAMPLE\\svc_provision")
        clean_env.setenv("AD_PASSWORD", "secret")
        clean_env.setenv("BASE_DN", "DC=example,DC=local")

        config = Config(load_env_file=False)

        assert config.validate_ad_config()
        assert config.get_missing_ad_vars() == []


class TestProvisioningSettings:

    def test_defaults(self, clean_env):
        clean_env.setenv("UPN_SUFFIX", "@example.local")

        config = Config(load_env_file=False)
        settings = config.provisioning_settings()

        assert settings.upn_suffix == "@example.local"
        assert settings.mail_domain == "example.local"
        assert settings.password_mode == PasswordMode.RANDOM
        assert settings.fixed_password is None
        assert settings.max_records == 100
        assert settings.dry_run is False
        assert config.secret_log_path == DEFAULT_SECRET_LOG_PATH

    def test_environment_values(self, clean_env):
        clean_env.setenv("UPN_SUFFIX", "example.local")
        clean_env.setenv("MAIL_DOMAIN", "example.com")
        clean_env.setenv("PASSWORD_MODE", "Fixed")
        clean_env.setenv("FIXED_PASSWORD", "Password!1")
        clean_env.setenv("MAX_RECORDS", "250")

        settings = Config(load_env_file=False).provisioning_settings()

        assert settings.mail_domain == "example.com"
        assert settings.password_mode == PasswordMode.FIXED
        assert settings.fixed_password == "Password!1"
        assert settings.max_records == 250

    def test_cli_overrides_win(self, clean_env):
        clean_env.setenv("UPN_SUFFIX", "example.local")
        clean_env.setenv("PASSWORD_MODE", "fixed")
        clean_env.setenv("MAX_RECORDS", "250")

        settings = Config(load_env_file=False).provisioning_settings(
            password_mode="random", max_records=5, dry_run=True
        )

        assert settings.password_mode == PasswordMode.RANDOM
        assert settings.max_records == 5
        assert settings.dry_run is True

    def test_fixed_mode_without_password_is_not_a_config_error(self, clean_env):
        clean_env.setenv("UPN_SUFFIX", "example.local")
        clean_env.setenv("PASSWORD_MODE", "fixed")

        settings = Config(load_env_file=False).provisioning_settings()

        assert settings.fixed_password is None

    def test_errors_are_collected(self, clean_env):
        clean_env.setenv("PASSWORD_MODE", "sometimes")
        clean_env.setenv("MAX_RECORDS", "lots")

        config = Config(load_env_file=False)
        errors = config.get_provisioning_errors()

        assert len(errors) == 3
        with pytest.raises(ValueError, match="UPN_SUFFIX is required"):
            config.provisioning_settings()

    def test_max_records_must_be_positive(self, clean_env):
        clean_env.setenv("UPN_SUFFIX", "example.local")

        errors = Config(load_env_file=False).get_provisioning_errors(max_records=0)

        assert errors == ["MAX_RECORDS must be at least 1"]
