"""Loaders that normalize external records into unified transactions."""

from importers.annotations import SwapLegs, extract_basis_override, extract_swap_legs
from importers.unified_csv import load_transactions

__all__ = ["SwapLegs", "extract_basis_override", "extract_swap_legs", "load_transactions"]
