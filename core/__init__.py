"""Core module - configuration, errors and observability.

Shared by every component of the sync service. Nothing in here talks to a
backend; ERP and record-store specifics live in /connectors/.
"""

__version__ = "1.0.0"
