import pytest

from core.directory import InMemoryDirectory
from core.models import PasswordMode, PersonRecord, ProvisioningSettings

FINANCE_OU = "OU=Finance,DC=example,DC=local"
SALES_OU = "OU=Sales,DC=example,DC=local"


@pytest.fixture
def directory():
    return InMemoryDirectory(organizational_units=[FINANCE_OU, SALES_OU])


@pytest.fixture
def department_map():
    return {"FIN101": FINANCE_OU, "SAL200": SALES_OU}


@pytest.fixture
def fixed_settings():
    return ProvisioningSettings(
        upn_suffix="example.local",
        mail_domain="example.com",
        password_mode=PasswordMode.FIXED,
        fixed_password="Password!1",
    )


@pytest.fixture
def random_settings():
    return ProvisioningSettings(
        upn_suffix="@example.local",
        mail_domain="example.com",
        password_mode=PasswordMode.RANDOM,
    )


@pytest.fixture
def alice():
    return PersonRecord(first_name="Alice", last_name="Nowak", department_id="FIN101")
