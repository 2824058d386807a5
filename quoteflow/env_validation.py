import os
import logging
from decimal import Decimal, InvalidOperation
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

# Mandatory environment variables for production
REQUIRED_PRODUCTION_ENV_VARS = [
    "SECRET_KEY",
    "DATABASE_URL",
]


def _fail(error_msg):
    logger.critical(error_msg)
    raise ImproperlyConfigured(error_msg)


def _check_production(secret_key):
    missing = [var for var in REQUIRED_PRODUCTION_ENV_VARS if not os.getenv(var)]
    if missing:
        _fail(f"CRITICAL: Missing required environment variables in production: {', '.join(missing)}")

    if secret_key.startswith("django-insecure") or len(secret_key) < 50:
        _fail("CRITICAL: SECRET_KEY must be a long, secure string in production")


def _check_billing():
    quantum = os.getenv("BILLING_TAX_QUANTUM")
    if quantum is not None:
        try:
            valid = Decimal(quantum) > 0
        except InvalidOperation:
            valid = False
        if not valid:
            _fail(f"CRITICAL: BILLING_TAX_QUANTUM must be a positive decimal, got {quantum!r}")

    step = os.getenv("BILLING_IMPORT_SORT_STEP")
    if step is not None and (not step.strip().isdigit() or int(step) < 1):
        _fail(f"CRITICAL: BILLING_IMPORT_SORT_STEP must be a positive integer, got {step!r}")

    prefix = os.getenv("BILLING_DRAFT_NUMBER_PREFIX")
    if prefix is not None and not prefix.strip():
        _fail("CRITICAL: BILLING_DRAFT_NUMBER_PREFIX cannot be blank")


def validate_env():
    """
    Validate critical environment variables for Django settings.
    Runs once per process; subsequent calls are idempotent.
    """
    is_production = os.getenv("PRODUCTION", "false").lower() == "true"

    secret_key = os.getenv("SECRET_KEY")
    if not secret_key and not is_production:
        logger.warning("SECRET_KEY not set, using insecure default for development.")

    if is_production:
        _check_production(secret_key or "")

    _check_billing()

    logger.info("Environment validation passed successfully")
