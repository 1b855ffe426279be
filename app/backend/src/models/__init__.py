"""ORM models exposed for easy imports."""

from .business import BusinessRegistration
from .expense import Expense
from .pos_sale import PosSale
from .prompt import PromptReference
from .report import Report

__all__ = [
    "BusinessRegistration",
    "Expense",
    "PosSale",
    "PromptReference",
    "Report",
]
