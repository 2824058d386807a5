import pytest
from django.core.exceptions import ImproperlyConfigured

from quoteflow.env_validation import validate_env


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("PRODUCTION", "SECRET_KEY", "DATABASE_URL", "BILLING_TAX_QUANTUM",
                 "BILLING_IMPORT_SORT_STEP", "BILLING_DRAFT_NUMBER_PREFIX"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestValidateEnv:
    def test_development_defaults_pass(self, clean_env):
        validate_env()

    def test_production_requires_database_url(self, clean_env):
        clean_env.setenv("PRODUCTION", "true")
        clean_env.setenv("SECRET_KEY", "x" * 60)
        with pytest.raises(ImproperlyConfigured, match="DATABASE_URL"):
            validate_env()

    def test_production_rejects_insecure_secret(self, clean_env):
        clean_env.setenv("PRODUCTION", "true")
        clean_env.setenv("SECRET_KEY", "django-insecure-short")
        clean_env.setenv("DATABASE_URL", "postgres://localhost/quoteflow")
        with pytest.raises(ImproperlyConfigured, match="SECRET_KEY"):
            validate_env()

    @pytest.mark.parametrize("name,value", [
        ("BILLING_TAX_QUANTUM", "0"),
        ("BILLING_TAX_QUANTUM", "cents"),
        ("BILLING_IMPORT_SORT_STEP", "0"),
        ("BILLING_IMPORT_SORT_STEP", "ten"),
        ("BILLING_DRAFT_NUMBER_PREFIX", "  "),
    ])
    def test_bad_billing_settings(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ImproperlyConfigured, match=name):
            validate_env()

    def test_cent_quantum_accepted(self, clean_env):
        clean_env.setenv("BILLING_TAX_QUANTUM", "0.01")
        validate_env()
