"""Environment-based configuration for the CTS engine."""

import logging

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CTS engine configuration.

    All settings can be overridden via environment variables with
    CTS_ prefix. For example:
        CTS_LOG_LEVEL=DEBUG
        CTS_SLA_HOURS_URGENT=2
    """

    service_name: str = "cts-engine"
    log_level: str = "INFO"

    # Phone snapshot contract
    phone_country_code: str = "+1"
    phone_digits: int = 10

    # Response window for urgent tickets
    sla_hours_urgent: int = 4

    # Load the built-in staff roster into the directory
    seed_staff_roster: bool = True

    notifications_enabled: bool = True

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_prefix": "CTS_"}


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup, called once by the app factory."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

