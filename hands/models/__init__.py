"""Data models for components and the install ledger."""
