from .base import HttpCarrierProvider, is_e164
from .sns import SnsConfig, SnsProvider
from .twilio import TWILIO_STATUS_MAP, TwilioConfig, TwilioProvider
from .vonage import VONAGE_STATUS_MAP, VonageConfig, VonageProvider

__all__ = [
    "HttpCarrierProvider",
    "SnsConfig",
    "SnsProvider",
    "TWILIO_STATUS_MAP",
    "TwilioConfig",
    "TwilioProvider",
    "VONAGE_STATUS_MAP",
    "VonageConfig",
    "VonageProvider",
    "is_e164",
]
