"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# Money columns: 15 digits, 2 decimals
Money = Numeric(15, 2)

# Percentage columns: 0.00 - 100.00
Percent = Numeric(5, 2)
