# storefront_hub/routers/grades.py
"""
Grade template + assignment administration.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session
from storefront_hub.models import GradeIn, GradeAssignmentIn
from storefront_hub.services.grades import GradeService

router = APIRouter(prefix="/admin/grades", tags=["Grades"])


@router.get("")
async def list_grades(db: AsyncSession = Depends(get_session)):
    return await GradeService(db).list_grades()


@router.post("", status_code=201)
async def create_grade(payload: GradeIn, db: AsyncSession = Depends(get_session)):
    return await GradeService(db).create_grade(payload)


@router.post("/seed-samples")
async def seed_sample_grades(db: AsyncSession = Depends(get_session)):
    created = await GradeService(db).seed_sample_grades()
    return {"created": created, "message": f"{len(created)} sample grade(s) created"}


@router.get("/{grade_id}")
async def get_grade(grade_id: int, db: AsyncSession = Depends(get_session)):
    return await GradeService(db).get_grade(grade_id)


@router.put("/{grade_id}")
async def update_grade(grade_id: int, payload: GradeIn, db: AsyncSession = Depends(get_session)):
    return await GradeService(db).update_grade(grade_id, payload)


@router.delete("/{grade_id}", status_code=204)
async def delete_grade(grade_id: int, db: AsyncSession = Depends(get_session)):
    await GradeService(db).delete_grade(grade_id)
    return Response(status_code=204)


@router.get("/{grade_id}/available-assignments")
async def available_assignments(grade_id: int, db: AsyncSession = Depends(get_session)):
    return await GradeService(db).available_assignments(grade_id)


@router.post("/{grade_id}/assign")
async def assign_grade(grade_id: int, payload: GradeAssignmentIn, db: AsyncSession = Depends(get_session)):
    created = await GradeService(db).assign(grade_id, payload)
    return {
        "message": "Grade assigned successfully" if created else "Grade already assigned",
        "created": created,
    }


@router.delete("/{grade_id}/assign")
async def unassign_grade(grade_id: int, payload: GradeAssignmentIn, db: AsyncSession = Depends(get_session)):
    removed = await GradeService(db).unassign(grade_id, payload)
    return {"message": "Grade assignment removed successfully", "removed": removed}
