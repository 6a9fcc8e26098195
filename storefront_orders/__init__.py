"""Order lifecycle, inventory and invoicing service for the storefront back-office."""

__version__ = "1.0.0"
