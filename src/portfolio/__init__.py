"""Bilingual portfolio site backend: locale-aware SEO URLs and scheduled reconciliation jobs."""

__all__ = ["__version__"]

__version__ = "0.1.0"
