"""
Attribution: mint extraction from enhanced transactions and read-time exclusion rules.
"""

from backend_mintledger.attribution.extractor import (
    MintLeg,
    attribute_mint,
    extract_mint_events,
    extract_mint_legs,
)
from backend_mintledger.attribution.filters import (
    ExclusionRule,
    ExclusionRuleSet,
    filter_mint_transactions,
    load_exclusion_rules,
)

__all__ = [
    "ExclusionRule",
    "ExclusionRuleSet",
    "MintLeg",
    "attribute_mint",
    "extract_mint_events",
    "extract_mint_legs",
    "filter_mint_transactions",
    "load_exclusion_rules",
]
