"""
payment_utilities/calculations.py

Pure helpers for the credits ledger and purchase payments. Mirrors the math
used by CreditPaymentsRepo, PurchasePaymentsRepo and return settlement for
pending amount and status roll-up.

Do not import repos or open DB connections here.
Only compute numbers; formatting belongs to the receipt layer.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Tuple

__all__ = [
    "clamp_non_negative",
    "pending_amount",
    "project_invoice_after_payment",
    "split_return_settlement",
    "purchase_status_from_paid",
]

ZERO = Decimal("0")


# -----------------------------
# Core utilities
# -----------------------------

def clamp_non_negative(x: Decimal) -> Decimal:
    """Return x if x > 0, else 0."""
    return x if x > ZERO else ZERO


# -----------------------------
# Credit sales
# -----------------------------

def pending_amount(total_amount: Decimal, paid_amount: Decimal, returned_amount: Decimal = ZERO) -> Decimal:
    """
    pending = total_amount - returned_amount - paid_amount, clamped at >= 0.
    """
    return clamp_non_negative(total_amount - returned_amount - paid_amount)


def project_invoice_after_payment(
    *,
    total_amount: Decimal,
    current_paid_amount: Decimal,
    new_payment_amount: Decimal,
    returned_amount: Decimal = ZERO,
) -> Tuple[Decimal, str]:
    """
    Returns (projected_paid_amount, projected_status).

    Status rules for credit invoices:
      - 'paid'    once nothing is pending
      - 'partial' otherwise (a payment has just been made)
    """
    projected_paid = current_paid_amount + new_payment_amount
    if pending_amount(total_amount, projected_paid, returned_amount) <= ZERO:
        return projected_paid, "paid"
    return projected_paid, "partial"


def split_return_settlement(
    *,
    return_total: Decimal,
    pending_before: Decimal,
    net_paid: Decimal,
) -> Tuple[Decimal, Decimal]:
    """
    Returns (receivable_reduction, refundable).

    A return first writes off what the customer still owes on the invoice;
    only the rest is given back, and never more than the customer has paid
    net of earlier refunds.
    """
    reduction = min(return_total, clamp_non_negative(pending_before))
    refundable = min(return_total - reduction, clamp_non_negative(net_paid))
    return reduction, refundable


# -----------------------------
# Purchases
# -----------------------------

def purchase_status_from_paid(total_amount: Decimal, paid_amount: Decimal) -> str:
    """'paid' when nothing is pending, 'partial' after any payment, else 'pending'."""
    if pending_amount(total_amount, paid_amount) <= ZERO:
        return "paid"
    if paid_amount > ZERO:
        return "partial"
    return "pending"
