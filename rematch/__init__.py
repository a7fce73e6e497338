"""
Rematch Team Balancer - Core Package

This package contains the core modules for:
- Team balancing (rematch.balance)
- Rating store exports (rematch.ingestion)
- Shared configuration and utilities
"""

from rematch.config import *
