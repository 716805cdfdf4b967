"""
application.gateway_registry - Lookup of configured payment gateways.

Only gateways with credentials are registered. Asking for a known but
unconfigured gateway is a typed GatewayNotConfiguredError, not a None.
"""

from __future__ import annotations

from domain.exceptions import GatewayNotConfiguredError, NotFoundError
from domain.ports import PaymentGatewayPort

KNOWN_GATEWAYS = ("stripe", "phonepe")


class GatewayRegistry:
    """Holds the gateway adapters the factory could configure."""

    def __init__(self, gateways: list[PaymentGatewayPort] | None = None):
        self._gateways = {g.name: g for g in (gateways or [])}

    def get(self, name: str) -> PaymentGatewayPort:
        key = (name or "").strip().lower()
        if key in self._gateways:
            return self._gateways[key]
        if key in KNOWN_GATEWAYS:
            raise GatewayNotConfiguredError(key)
        raise NotFoundError(f"Unknown payment gateway '{name}'.")

    def configured(self) -> list[str]:
        return [name for name in KNOWN_GATEWAYS if name in self._gateways] + [
            name for name in self._gateways if name not in KNOWN_GATEWAYS
        ]
