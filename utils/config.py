# =============================================================================
# utils/config.py - Configuration management
# =============================================================================

import os
from typing import Optional, List
from dotenv import load_dotenv

from core.models import PasswordMode, ProvisioningSettings

DEFAULT_MAX_RECORDS = 100
DEFAULT_SECRET_LOG_PATH = "logs/secrets.log.enc"


class Config:
    """Configuration management"""

    def __init__(self, load_env_file: bool = True):
        if load_env_file:
            load_dotenv()

    @property
    def ad_server(self) -> Optional[str]:
        return os.getenv("AD_SERVER")

    @property
    def ad_username(self) -> Optional[str]:
        return os.getenv("AD_USERNAME")

    @property
    def ad_password(self) -> Optional[str]:
        return os.getenv("AD_PASSWORD")

    @property
    def base_dn(self) -> Optional[str]:
        return os.getenv("BASE_DN")

    @property
    def upn_suffix(self) -> Optional[str]:
        return os.getenv("UPN_SUFFIX")

    @property
    def mail_domain(self) -> Optional[str]:
        """MAIL_DOMAIN, falling back to the UPN suffix without its '@'"""
        domain = os.getenv("MAIL_DOMAIN") or self.upn_suffix or ""
        return domain.strip().lstrip("@") or None

    @property
    def password_mode(self) -> str:
        return (os.getenv("PASSWORD_MODE") or PasswordMode.RANDOM.value).strip().lower()

    @property
    def fixed_password(self) -> Optional[str]:
        return os.getenv("FIXED_PASSWORD")

    @property
    def secret_log_key(self) -> Optional[str]:
        return os.getenv("SECRET_LOG_KEY")

    @property
    def secret_log_path(self) -> str:
        return os.getenv("SECRET_LOG_PATH") or DEFAULT_SECRET_LOG_PATH

    @property
    def max_records(self) -> str:
        return os.getenv("MAX_RECORDS") or str(DEFAULT_MAX_RECORDS)

    def validate_ad_config(self) -> bool:
        """Validate that all required AD configuration is present"""
        required = [self.ad_server, self.ad_username, self.ad_password, self.base_dn]
        return all(required)

    def get_missing_ad_vars(self) -> List[str]:
        """Get list of missing AD configuration variables"""
        vars_and_names = [
            (self.ad_server, "AD_SERVER"),
            (self.ad_username, "AD_USERNAME"),
            (self.ad_password, "AD_PASSWORD"),
            (self.base_dn, "BASE_DN")
        ]
        return [name for var, name in vars_and_names if not var]

    def get_provisioning_errors(self, password_mode: Optional[str] = None,
                                max_records: Optional[int] = None) -> List[str]:
        """Problems that make the provisioning settings unusable"""
        errors = []

        if not (self.upn_suffix or "").strip().lstrip("@"):
            errors.append("UPN_SUFFIX is required")

        mode = (password_mode or self.password_mode).lower()
        if mode not in [m.value for m in PasswordMode]:
            errors.append(f"PASSWORD_MODE must be 'random' or 'fixed', got '{mode}'")

        if max_records is None:
            try:
                max_records = int(self.max_records)
            except ValueError:
                errors.append(f"MAX_RECORDS must be an integer, got '{self.max_records}'")
                max_records = DEFAULT_MAX_RECORDS
        if max_records < 1:
            errors.append("MAX_RECORDS must be at least 1")

        return errors

    def provisioning_settings(self, password_mode: Optional[str] = None,
                              max_records: Optional[int] = None,
                              dry_run: bool = False) -> ProvisioningSettings:
        """Settings for the provisioning loop, with optional CLI overrides"""
        errors = self.get_provisioning_errors(password_mode, max_records)
        if errors:
            raise ValueError("; ".join(errors))

        return ProvisioningSettings(
            upn_suffix=self.upn_suffix.strip(),
            mail_domain=self.mail_domain,
            password_mode=PasswordMode((password_mode or self.password_mode).lower()),
            fixed_password=self.fixed_password or None,
            max_records=max_records if max_records is not None else int(self.max_records),
            dry_run=dry_run,
        )
