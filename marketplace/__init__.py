"""Construction materials marketplace: listing lifecycle, fulfillment and discovery."""

__version__ = "0.1.0"
