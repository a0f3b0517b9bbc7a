"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends

from product_factory.repositories.derived_product_repository import DerivedProductRepository
from product_factory.repositories.opportunity_repository import OpportunityRepository
from product_factory.repositories.validation_repository import ValidationRepository
from product_factory.services.budget import BudgetGovernor, get_budget_governor


def get_opportunity_repository() -> OpportunityRepository:
    return OpportunityRepository()


def get_derived_product_repository() -> DerivedProductRepository:
    return DerivedProductRepository()


def get_validation_repository() -> ValidationRepository:
    return ValidationRepository()


Opportunities = Annotated[OpportunityRepository, Depends(get_opportunity_repository)]
DerivedProducts = Annotated[DerivedProductRepository, Depends(get_derived_product_repository)]
Validations = Annotated[ValidationRepository, Depends(get_validation_repository)]
Budget = Annotated[BudgetGovernor, Depends(get_budget_governor)]

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
