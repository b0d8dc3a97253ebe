# storefront_hub/services/__init__.py
"""
Business logic services for Storefront Hub.
"""
from storefront_hub.services.availability import AvailabilityResolver
from storefront_hub.services.catalog import CatalogService
from storefront_hub.services.customers import CustomerService
from storefront_hub.services.grades import GradeService, GradeTableStrategy, grade_tables
from storefront_hub.services.orders import OrderCommitEngine, OrderAdminService

__all__ = [
    "AvailabilityResolver",
    "CatalogService",
    "CustomerService",
    "GradeService",
    "GradeTableStrategy",
    "grade_tables",
    "OrderCommitEngine",
    "OrderAdminService",
]
