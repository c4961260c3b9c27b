"""Outbound collaborator clients."""

from .messaging import WhatsAppClient, get_messenger
from .payment_gateway import PaymentGatewayClient, get_payment_gateway

__all__ = [
    "PaymentGatewayClient",
    "WhatsAppClient",
    "get_messenger",
    "get_payment_gateway",
]
