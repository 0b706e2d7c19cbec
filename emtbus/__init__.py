"""EMT Madrid bus arrivals for Telegram inline mode."""

__version__ = "0.1.0"
