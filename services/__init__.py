"""
Service layer for business logic.

This package contains the service that orchestrates CSV ingestion,
timezone-aware transaction queries and Excel export.
"""
