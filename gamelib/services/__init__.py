"""
Services module for library sync business logic.

This module organizes services into:
- catalog: IGDB catalog client (exact id lookup and name search)
- sync: platform adapters, identity matching and reconciliation
"""
