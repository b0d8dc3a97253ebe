# storefront_hub/routers/imports.py
"""
Bulk product import jobs and CSV export.
"""
from __future__ import annotations
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session, get_session_factory, init_db
from storefront_hub.errors import ValidationError
from storefront_hub.models import ImportRequest, ImportStartedOut
from storefront_hub.services.imports import ProductImporter, export_products_csv, import_jobs

router = APIRouter(prefix="/import", tags=["Import"])


async def get_importer() -> ProductImporter:
    if get_session_factory() is None:
        await init_db()
    return ProductImporter(get_session_factory())


@router.post("/products", response_model=ImportStartedOut, status_code=202)
async def start_import(
    payload: ImportRequest,
    background: BackgroundTasks,
    importer: ProductImporter = Depends(get_importer),
):
    if not payload.data:
        raise ValidationError("Invalid data format: no rows to import", code="import_empty")
    job = import_jobs.create(total=len(payload.data))
    background.add_task(importer.run, job, payload.data)
    return ImportStartedOut(job_id=job.id, total=job.total)


@router.get("/jobs")
async def list_jobs():
    return [job.to_dict() for job in import_jobs.all_jobs()]


@router.delete("/jobs")
async def clear_finished_jobs():
    return {"removed": import_jobs.clear_finished()}


@router.get("/jobs/{job_id}")
async def get_job(job_id: str):
    return import_jobs.get(job_id).to_dict()


@router.get("/export-products")
async def export_products(db: AsyncSession = Depends(get_session)):
    content = await export_products_csv(db)
    filename = f"produtos_exportados_{date.today().isoformat()}.csv"
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
