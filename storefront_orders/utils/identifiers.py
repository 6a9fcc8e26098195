"""
Human-facing document numbers.
"""
import secrets

# Digits and uppercase letters without I and O.
ORDER_CODE_ALPHABET = "1234567890ABCDEFGHJKLMNPQRSTUVWXYZ"
ORDER_CODE_LENGTH = 8


def generate_order_number(prefix: str = "ORD-") -> str:
    code = "".join(secrets.choice(ORDER_CODE_ALPHABET) for _ in range(ORDER_CODE_LENGTH))
    return f"{prefix}{code}"


def invoice_number_for(order_number: str, order_prefix: str = "ORD-", invoice_prefix: str = "INV-") -> str:
    """Derive the invoice number from an order number: ORD-XXXX -> INV-XXXX."""
    code = order_number[len(order_prefix):] if order_number.startswith(order_prefix) else order_number
    return f"{invoice_prefix}{code}"
