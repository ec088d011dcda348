"""
UniEats Revenue - Order Revenue Audit CLI Tool

A CLI tool for computing, auditing and repairing the financial fields
(service fee, cafeteria commission, admin revenue, total amount) of
UniEats orders, and for cross-checking dashboard aggregates against the
raw order data.
"""

__version__ = "0.1.0"

from . import revenue
from . import utils

__all__ = ["revenue", "utils"]
