"""Payment gateway integration."""

from mlm_app.services.payment.gateway import PaymentGatewayClient, compute_signature

__all__ = ["PaymentGatewayClient", "compute_signature"]
