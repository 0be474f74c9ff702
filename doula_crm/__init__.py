"""Multi-tenant practice management for doulas: leads, clients, billing and automation."""

__version__ = "0.1.0"
