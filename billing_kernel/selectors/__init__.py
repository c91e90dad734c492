"""Read-only selectors over the billing fact tables."""

from billing_kernel.selectors.base import BaseSelector
from billing_kernel.selectors.fact_selector import FactFilter, FactSelector

__all__ = ["BaseSelector", "FactFilter", "FactSelector"]
