"""
Core modules for transaction ingestion and timezone-aware querying.

This package contains:
- config: Application configuration and settings
- db: SQLite transaction store
- exceptions: Custom exception classes
- exporters: Excel export functionality
- geo: Coordinate to IANA timezone resolution
- logger: Logging configuration
- mappers: CSV row to Transaction mapping
- parsing: Quote-aware CSV parsing
- schema: Pydantic models for transactions and requests
- timeutils: UTC / local time conversions
- validators: Date range and timezone header validation
"""
