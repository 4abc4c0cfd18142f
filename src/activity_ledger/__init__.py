"""Field-work activity lifecycle, contract hour ledger and invoicing."""

__version__ = "0.1.0"
