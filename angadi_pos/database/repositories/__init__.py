# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from angadi_pos.database.repositories import (
        # Catalog & parties
        ItemsRepo, Item, CustomersRepo, Customer, VendorsRepo, Vendor,
        StoreSettingsRepo, StoreSettings,
        # Stock
        InventoryRepo, DeductionResult,
        # Sales
        SalesInvoicesRepo, InvoiceDraft, InvoiceLine,
        SalesOrdersRepo, OrderDraft, OrderLine,
        # Purchases
        PurchasesRepo, PurchaseDraft, PurchaseLine,
        PurchasePaymentsRepo,
        # Returns, credit notes, credits ledger
        SalesReturnsRepo, ReturnLine, ReturnSettlement,
        CreditNotesRepo, CreditPaymentsRepo,
        # Reporting
        TaxReportsRepo, GstSummary, TaxTotals,
    )
"""

# ---------------- Catalog ------------------
from .items_repo import ItemsRepo, Item

# ---------------- Parties ------------------
from .customers_repo import CustomersRepo, Customer
from .vendors_repo import VendorsRepo, Vendor
from .store_settings_repo import StoreSettingsRepo, StoreSettings

# ---------------- Inventory ----------------
from .inventory_repo import InventoryRepo, DeductionResult

# ------------------ Sales ------------------
from .sales_repo import SalesInvoicesRepo, InvoiceDraft, InvoiceLine
from .sales_orders_repo import SalesOrdersRepo, OrderDraft, OrderLine

# ---------------- Purchases ----------------
from .purchases_repo import PurchasesRepo, PurchaseDraft, PurchaseLine
from .purchase_payments_repo import PurchasePaymentsRepo

# ---------------- Returns ------------------
from .sales_returns_repo import SalesReturnsRepo, ReturnLine, ReturnSettlement

# ------------- Credit notes / ledger -------
from .credit_notes_repo import CreditNotesRepo
from .credit_payments_repo import CreditPaymentsRepo

# ---------------- Reporting ----------------
from .tax_reports_repo import TaxReportsRepo, GstSummary, TaxTotals

__all__ = [
    # items_repo
    "ItemsRepo",
    "Item",
    # parties
    "CustomersRepo",
    "Customer",
    "VendorsRepo",
    "Vendor",
    "StoreSettingsRepo",
    "StoreSettings",
    # inventory_repo
    "InventoryRepo",
    "DeductionResult",
    # sales
    "SalesInvoicesRepo",
    "InvoiceDraft",
    "InvoiceLine",
    "SalesOrdersRepo",
    "OrderDraft",
    "OrderLine",
    # purchases
    "PurchasesRepo",
    "PurchaseDraft",
    "PurchaseLine",
    "PurchasePaymentsRepo",
    # returns
    "SalesReturnsRepo",
    "ReturnLine",
    "ReturnSettlement",
    # credit notes / ledger
    "CreditNotesRepo",
    "CreditPaymentsRepo",
    # reporting
    "TaxReportsRepo",
    "GstSummary",
    "TaxTotals",
]
