"""SQLAlchemy database models."""
from product_factory.models.base import Base
from product_factory.models.cost import CostRecord, ProviderKey
from product_factory.models.derived_product import DerivedProduct
from product_factory.models.opportunity import Opportunity
from product_factory.models.signal import Signal
from product_factory.models.validation import CompetitiveCheck, KeywordValidation

__all__ = [
    "Base",
    "Signal",
    "Opportunity",
    "DerivedProduct",
    "CompetitiveCheck",
    "KeywordValidation",
    "CostRecord",
    "ProviderKey",
]
