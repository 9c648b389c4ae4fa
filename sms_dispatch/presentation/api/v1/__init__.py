from . import gateway, health, sms

__all__ = ["gateway", "health", "sms"]
