"""
Factory for creating carrier provider instances.

This factory creates the appropriate carrier client based on the provider slug
and wires it to its credentials from settings.
"""

import httpx

from ...channels import (
    SnsConfig,
    SnsProvider,
    TwilioConfig,
    TwilioProvider,
    VonageConfig,
    VonageProvider,
)
from ...config import Settings
from ...domain.ports import CarrierProvider
from ...gateway import GatewayAdapter, GatewayEndpoints

PROVIDER_SLUGS = ("twilio", "vonage", "aws_sns")


class ProviderFactory:
    """
    Factory for carrier providers and the hardware gateway adapter.

    Uses lazy initialization to avoid creating unused clients.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._instances: dict[str, CarrierProvider] = {}
        self._gateway: GatewayAdapter | None = None

    def get_provider(self, slug: str) -> CarrierProvider:
        """
        Get or create the carrier client for a slug.

        Raises:
            ValueError: If the slug names no known provider
        """
        if slug not in self._instances:
            self._instances[slug] = self._create_provider(slug)
        return self._instances[slug]

    def _create_provider(self, slug: str) -> CarrierProvider:
        s = self._settings
        match slug:
            case "twilio":
                return TwilioProvider(
                    TwilioConfig(
                        account_sid=s.twilio_account_sid,
                        auth_token=s.twilio_auth_token,
                        from_number=s.twilio_from_number,
                    ),
                    timeout=s.provider_timeout,
                    transport=self._transport,
                )
            case "vonage":
                return VonageProvider(
                    VonageConfig(
                        api_key=s.vonage_api_key,
                        api_secret=s.vonage_api_secret,
                        from_number=s.vonage_from_number,
                    ),
                    timeout=s.provider_timeout,
                    transport=self._transport,
                )
            case "aws_sns":
                return SnsProvider(
                    SnsConfig(
                        access_key_id=s.aws_access_key_id,
                        secret_access_key=s.aws_secret_access_key,
                        region=s.aws_region,
                        sender_id=s.sns_sender_id,
                    ),
                    timeout=s.provider_timeout,
                )
            case _:
                raise ValueError(f"Unsupported provider: {slug}")

    def get_all_providers(self) -> dict[str, CarrierProvider]:
        for slug in PROVIDER_SLUGS:
            self.get_provider(slug)
        return self._instances.copy()

    def get_gateway(self) -> GatewayAdapter:
        if self._gateway is None:
            s = self._settings
            endpoints = GatewayEndpoints(
                send_path=s.gateway_send_path,
                login_path=s.gateway_login_path,
                status_paths=tuple(s.gateway_status_paths),
                inventory_paths=tuple(s.gateway_inventory_paths),
                connect_timeout=s.gateway_connect_timeout,
                auth_timeout=s.gateway_auth_timeout,
                send_timeout=s.gateway_send_timeout,
                status_timeout=s.gateway_status_timeout,
                inventory_timeout=s.gateway_inventory_timeout,
                verify_tls=s.gateway_verify_tls,
            )
            self._gateway = GatewayAdapter(endpoints=endpoints, transport=self._transport)
        return self._gateway

    def reset(self) -> None:
        """Drop cached instances (useful for testing)."""
        self._instances.clear()
        self._gateway = None
