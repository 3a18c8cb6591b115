"""Atmos: air-quality dashboard backend (AI-sourced AQI, caching, guidance, chat)."""

__version__ = "0.1.0"
