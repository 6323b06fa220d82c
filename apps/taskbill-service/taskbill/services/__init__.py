"""Business logic services package with public service helpers."""

from .email_service import (
    EmailSendError,
    EmailService,
    EmailServiceConfig,
    get_email_service,
    reset_email_service,
)
from .exchange_rate_service import (
    ExchangeRateConfig,
    ExchangeRateError,
    ExchangeRateService,
    RateQuote,
    get_exchange_rate_service,
    reset_exchange_rate_service,
)

__all__ = [
    "EmailSendError",
    "EmailService",
    "EmailServiceConfig",
    "get_email_service",
    "reset_email_service",
    "ExchangeRateConfig",
    "ExchangeRateError",
    "ExchangeRateService",
    "RateQuote",
    "get_exchange_rate_service",
    "reset_exchange_rate_service",
]
