# storefront_hub/services/grades.py
"""
Grade templates and (product, color) assignments.

Templates are a catalog of their own, joined to products only through
product_color_grades. Create/update replace the whole template set.

Listing goes through GradeTableStrategy: deployments migrated from the
older schema may still carry a `grades` table instead of `grade_vendida`,
or neither. The schema is inspected once (at startup) and the answer cached.
"""
from __future__ import annotations
import enum
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, delete, update, func, text
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import list_tables, transaction
from storefront_hub.db_models import (
    Grade, GradeTemplate, ProductColorGrade, Product, ProductVariant, Color, Size, OrderItem,
)
from storefront_hub.errors import NotFoundError, ValidationError
from storefront_hub.models import GradeIn, GradeTemplateIn, GradeAssignmentIn
from storefront_hub.services.availability import AvailabilityResolver, TemplateRow
from storefront_hub.services.catalog import CatalogService

logger = logging.getLogger(__name__)


# ============================================================================
# Table capability strategy
# ============================================================================

class GradeSource(str, enum.Enum):
    primary = "primary"
    legacy = "legacy"
    absent = "absent"


class GradeTableStrategy:
    """
    Migration-compatibility shim for grade listing.

    primary -> grade_vendida (current schema)
    legacy  -> grades (pre-redesign schema, read-only listing)
    absent  -> neither exists; listing is empty
    """

    PRIMARY_TABLE = "grade_vendida"
    LEGACY_TABLE = "grades"

    def __init__(self):
        self.source: Optional[GradeSource] = None

    async def detect(self, db: AsyncSession) -> GradeSource:
        tables = await list_tables(db)
        if self.PRIMARY_TABLE in tables:
            self.source = GradeSource.primary
        elif self.LEGACY_TABLE in tables:
            self.source = GradeSource.legacy
            logger.warning("%s table missing, grade listing reads legacy table %s",
                           self.PRIMARY_TABLE, self.LEGACY_TABLE)
        else:
            self.source = GradeSource.absent
            logger.warning("No grade table found, grade listing will be empty")
        logger.info("Grade table source: %s", self.source.value)
        return self.source

    async def current(self, db: AsyncSession) -> GradeSource:
        if self.source is None:
            await self.detect(db)
        return self.source

    def reset(self) -> None:
        self.source = None


grade_tables = GradeTableStrategy()


# ============================================================================
# Helpers
# ============================================================================

def normalize_templates(rows: Iterable[GradeTemplateIn]) -> Dict[int, int]:
    """size_id -> required_quantity; non-positive or incomplete rows are skipped, last row wins."""
    out: Dict[int, int] = {}
    for row in rows:
        if row.size_id is None or row.required_quantity is None or row.required_quantity <= 0:
            continue
        out[row.size_id] = row.required_quantity
    return out


def template_to_dict(row: TemplateRow) -> dict:
    return {
        "size_id": row.size_id,
        "size": row.size,
        "display_order": row.display_order,
        "required_quantity": row.required_quantity,
    }


def grade_to_dict(grade: Grade, templates: Sequence[TemplateRow]) -> dict:
    return {
        "id": grade.id,
        "name": grade.name,
        "description": grade.description,
        "active": grade.active,
        "templates": [template_to_dict(t) for t in templates],
        "total_quantity": sum(t.required_quantity for t in templates),
        "created_at": grade.created_at.isoformat() if grade.created_at else None,
    }


# (name, description, [(size label, required_quantity)])
SAMPLE_GRADES: List[Tuple[str, str, List[Tuple[str, int]]]] = [
    ("Grade Básica Masculina", "Grade padrão masculina 38 a 42",
     [("38", 4), ("39", 6), ("40", 8), ("41", 6), ("42", 4)]),
    ("Grade Feminina Premium", "Grade feminina 34 a 38",
     [("34", 3), ("35", 5), ("36", 6), ("37", 5), ("38", 3)]),
    ("Grade Infantil Colorida", "Grade infantil 32 a 36",
     [("32", 2), ("33", 3), ("34", 4), ("35", 3), ("36", 2)]),
]


class GradeService:
    def __init__(self, db: AsyncSession, strategy: Optional[GradeTableStrategy] = None):
        self.db = db
        self.strategy = strategy or grade_tables
        self.resolver = AvailabilityResolver(db)

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_grades(self) -> List[dict]:
        source = await self.strategy.current(self.db)
        if source == GradeSource.absent:
            return []
        if source == GradeSource.legacy:
            return await self._list_legacy()

        grades = (await self.db.execute(select(Grade).order_by(Grade.name))).scalars().all()
        templates = await self.resolver.templates_for(g.id for g in grades)
        counts = dict((await self.db.execute(
            select(ProductColorGrade.grade_id, func.count(ProductColorGrade.id))
            .group_by(ProductColorGrade.grade_id)
        )).all())
        return [
            {**grade_to_dict(g, templates.get(g.id, [])), "assignment_count": counts.get(g.id, 0)}
            for g in grades
        ]

    async def _list_legacy(self) -> List[dict]:
        result = await self.db.execute(
            text(f"SELECT * FROM {GradeTableStrategy.LEGACY_TABLE} ORDER BY name")
        )
        rows = []
        for row in result.mappings().all():
            data = dict(row)
            data.setdefault("active", True)
            data.setdefault("description", None)
            data["templates"] = []
            data["total_quantity"] = 0
            data["assignment_count"] = 0
            rows.append(data)
        return rows

    async def _load(self, grade_id: int) -> Grade:
        grade = (await self.db.execute(
            select(Grade).where(Grade.id == grade_id)
        )).scalar_one_or_none()
        if grade is None:
            raise NotFoundError(f"Grade {grade_id} not found", code="grade_not_found")
        return grade

    async def get_grade(self, grade_id: int, active_only: bool = False) -> dict:
        """Grade with templates and assignments (product/color names)."""
        grade = await self._load(grade_id)
        if active_only and not grade.active:
            raise NotFoundError(f"Grade {grade_id} not found", code="grade_not_found")
        templates = (await self.resolver.templates_for([grade.id]))[grade.id]
        stmt = (
            select(ProductColorGrade, Product.name, Color.name, Color.hex_code)
            .outerjoin(Product, ProductColorGrade.product_id == Product.id)
            .outerjoin(Color, ProductColorGrade.color_id == Color.id)
            .where(ProductColorGrade.grade_id == grade.id)
            .order_by(Product.name, Color.name)
        )
        assignments = [
            {
                "id": a.id,
                "product_id": a.product_id,
                "product_name": product_name,
                "color_id": a.color_id,
                "color_name": color_name,
                "hex_code": hex_code,
            }
            for a, product_name, color_name, hex_code in (await self.db.execute(stmt)).all()
        ]
        return {**grade_to_dict(grade, templates), "assignments": assignments}

    async def available_assignments(self, grade_id: int) -> List[dict]:
        await self._load(grade_id)
        stmt = (
            select(
                ProductVariant.product_id, ProductVariant.color_id,
                Product.name, Color.name, Color.hex_code, ProductColorGrade.id,
            )
            .join(Product, ProductVariant.product_id == Product.id)
            .join(Color, ProductVariant.color_id == Color.id)
            .outerjoin(
                ProductColorGrade,
                (ProductColorGrade.product_id == ProductVariant.product_id)
                & (ProductColorGrade.color_id == ProductVariant.color_id)
                & (ProductColorGrade.grade_id == grade_id),
            )
            .where(Product.active == True)
            .distinct()
            .order_by(Product.name, Color.name)
        )
        return [
            {
                "product_id": product_id,
                "color_id": color_id,
                "product_name": product_name,
                "color_name": color_name,
                "hex_code": hex_code,
                "already_assigned": assignment_id is not None,
            }
            for product_id, color_id, product_name, color_name, hex_code, assignment_id
            in (await self.db.execute(stmt)).all()
        ]

    # =========================================================================
    # Writes
    # =========================================================================

    async def _replace_templates(self, grade_id: int, rows: Iterable[GradeTemplateIn]) -> None:
        wanted = normalize_templates(rows)
        if wanted:
            known = set((await self.db.execute(
                select(Size.id).where(Size.id.in_(list(wanted)))
            )).scalars().all())
            unknown = sorted(set(wanted) - known)
            if unknown:
                raise ValidationError(f"Unknown size id(s): {unknown}", code="unknown_size",
                                      details={"size_ids": unknown})

        await self.db.execute(delete(GradeTemplate).where(GradeTemplate.grade_id == grade_id))
        for size_id, quantity in wanted.items():
            self.db.add(GradeTemplate(grade_id=grade_id, size_id=size_id, required_quantity=quantity))
        await self.db.flush()

    async def create_grade(self, payload: GradeIn) -> dict:
        name = (payload.name or "").strip()
        if not name:
            raise ValidationError("Name is required", code="name_required")
        async with transaction(self.db):
            grade = Grade(
                name=name,
                description=payload.description or None,
                active=True if payload.active is None else payload.active,
            )
            self.db.add(grade)
            await self.db.flush()
            await self._replace_templates(grade.id, payload.templates)
        logger.info("Grade %s created: %s", grade.id, name)
        return await self.get_grade(grade.id)

    async def update_grade(self, grade_id: int, payload: GradeIn) -> dict:
        name = (payload.name or "").strip()
        if not name:
            raise ValidationError("Name is required", code="name_required")
        async with transaction(self.db):
            grade = await self._load(grade_id)
            grade.name = name
            grade.description = payload.description or None
            grade.active = True if payload.active is None else payload.active
            await self._replace_templates(grade.id, payload.templates)
        logger.info("Grade %s updated: %s", grade_id, name)
        return await self.get_grade(grade_id)

    async def delete_grade(self, grade_id: int) -> None:
        async with transaction(self.db):
            grade = await self._load(grade_id)
            await self.db.execute(delete(GradeTemplate).where(GradeTemplate.grade_id == grade.id))
            await self.db.execute(delete(ProductColorGrade).where(ProductColorGrade.grade_id == grade.id))
            await self.db.execute(
                update(OrderItem).where(OrderItem.grade_id == grade.id).values(grade_id=None)
            )
            await self.db.delete(grade)
        logger.info("Grade %s deleted", grade_id)

    async def assign(self, grade_id: int, payload: GradeAssignmentIn) -> bool:
        """Bind grade to (product, color). Returns False when it was already bound."""
        if not payload.product_id or not payload.color_id:
            raise ValidationError("Product ID and Color ID are required", code="assignment_required")
        await self._load(grade_id)
        if (await self.db.execute(select(Product.id).where(Product.id == payload.product_id))).scalar_one_or_none() is None:
            raise NotFoundError(f"Product {payload.product_id} not found", code="product_not_found")
        if (await self.db.execute(select(Color.id).where(Color.id == payload.color_id))).scalar_one_or_none() is None:
            raise NotFoundError(f"Color {payload.color_id} not found", code="color_not_found")

        existing = (await self.db.execute(
            select(ProductColorGrade.id).where(
                ProductColorGrade.product_id == payload.product_id,
                ProductColorGrade.color_id == payload.color_id,
                ProductColorGrade.grade_id == grade_id,
            )
        )).scalar_one_or_none()
        if existing is not None:
            return False
        self.db.add(ProductColorGrade(
            product_id=payload.product_id, color_id=payload.color_id, grade_id=grade_id
        ))
        await self.db.flush()
        logger.info("Grade %s assigned to product %s color %s", grade_id, payload.product_id, payload.color_id)
        return True

    async def unassign(self, grade_id: int, payload: GradeAssignmentIn) -> int:
        result = await self.db.execute(
            delete(ProductColorGrade).where(
                ProductColorGrade.product_id == payload.product_id,
                ProductColorGrade.color_id == payload.color_id,
                ProductColorGrade.grade_id == grade_id,
            )
        )
        await self.db.flush()
        return result.rowcount

    async def seed_sample_grades(self) -> List[int]:
        """Create the demo templates that are not there yet. Returns the new grade ids."""
        created: List[int] = []
        async with transaction(self.db):
            for name, description, rows in SAMPLE_GRADES:
                exists = (await self.db.execute(
                    select(Grade.id).where(Grade.name == name)
                )).scalars().first()
                if exists is not None:
                    continue
                grade = Grade(name=name, description=description, active=True)
                self.db.add(grade)
                await self.db.flush()
                for label, quantity in rows:
                    size = await CatalogService(self.db).size_by_label(label)
                    self.db.add(GradeTemplate(grade_id=grade.id, size_id=size.id, required_quantity=quantity))
                await self.db.flush()
                created.append(grade.id)
        logger.info("Seeded %d sample grade(s)", len(created))
        return created
