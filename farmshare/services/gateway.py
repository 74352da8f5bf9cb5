"""
Payment gateway seam used for wallet top-ups.

The escrow engine only needs two things from a gateway: an order reference to
attach to the pending ``wallet_credit`` record, and a yes/no answer when the
client comes back with proof of payment.
"""
import hashlib
import hmac
import secrets
import time
from typing import Mapping, Protocol


class PaymentGateway(Protocol):
    test_mode: bool

    def create_order(self, amount, receipt=None) -> str:
        ...

    def verify(self, order_ref: str, proof: Mapping) -> bool:
        ...


class SandboxGateway:
    """Mock orders; every payment proof is accepted."""

    test_mode = True

    def create_order(self, amount, receipt=None):
        return f"order_test_{int(time.time() * 1000)}_{secrets.token_hex(4)}"

    def verify(self, order_ref, proof):
        return bool(order_ref)


class HmacSignatureGateway:
    """Checks ``HMAC-SHA256(secret, "<order_id>|<payment_id>")`` signatures."""

    test_mode = False

    def __init__(self, key_id, secret):
        if not secret:
            raise ValueError("HMAC payment gateway requires a secret.")
        self.key_id = key_id
        self._secret = secret.encode("utf-8")

    def create_order(self, amount, receipt=None):
        return f"order_{secrets.token_hex(8)}"

    def sign(self, order_ref, payment_id):
        message = f"{order_ref}|{payment_id}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify(self, order_ref, proof):
        payment_id = (proof or {}).get("payment_id")
        signature = (proof or {}).get("signature")
        if not order_ref or not payment_id or not signature:
            return False
        return hmac.compare_digest(self.sign(order_ref, payment_id), str(signature))


def gateway_from_config(config):
    kind = (config.get("PAYMENT_GATEWAY") or "test").strip().lower()
    if kind == "test":
        return SandboxGateway()
    if kind == "hmac":
        return HmacSignatureGateway(config.get("PAYMENT_GATEWAY_KEY_ID"), config.get("PAYMENT_GATEWAY_SECRET"))
    raise ValueError(f"Unknown payment gateway: {kind}")
