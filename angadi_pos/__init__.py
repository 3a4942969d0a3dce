"""Angadi POS back-office: GST invoice totals, FEFO stock batches and document flows."""

__version__ = "0.4.0"
