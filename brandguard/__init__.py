"""BrandGuard: brand compliance checks of web pages against reference sources."""

__version__ = "0.1.0"
