"""Import run API endpoints."""

# Hey future me - POST /imports/{label_id} runs the import INSIDE the request. A full label
# takes a while (1s between search pages plus one album fetch per hit), so clients need a
# generous timeout. Run-level failures come back through the exception handlers (404 unknown
# label, 503 missing credentials); per-release failures are just entries in "errors".

from fastapi import APIRouter, Depends, Query

from labelcatalog.api.dependencies import get_importer
from labelcatalog.api.schemas.imports import ImportAllResponse, ImportRunResponse
from labelcatalog.application.services.catalog_importer import CatalogImporter

router = APIRouter()


@router.post("")
async def import_all_labels(
    dry_run: bool = Query(False, description="Report what would be imported, write nothing"),
    importer: CatalogImporter = Depends(get_importer),
) -> ImportAllResponse:
    """Import every known label, one after another."""
    summaries = await importer.run_all(dry_run=dry_run)
    runs = [ImportRunResponse.from_summary(s) for s in summaries]
    return ImportAllResponse(runs=runs, failed=sum(1 for r in runs if r.status == "failed"))


@router.get("/runs")
async def list_import_runs(
    label_id: str | None = Query(None, description="Only runs for this label"),
    limit: int = Query(20, ge=1, le=200),
    importer: CatalogImporter = Depends(get_importer),
) -> list[ImportRunResponse]:
    """Run history, most recent first."""
    runs = await importer.list_runs(label_id=label_id, limit=limit)
    return [ImportRunResponse.from_run(run) for run in runs]


@router.get("/runs/{run_id}")
async def get_import_run(
    run_id: str,
    importer: CatalogImporter = Depends(get_importer),
) -> ImportRunResponse:
    return ImportRunResponse.from_run(await importer.get_run(run_id))


@router.post("/{label_id}")
async def import_label(
    label_id: str,
    dry_run: bool = Query(False, description="Report what would be imported, write nothing"),
    importer: CatalogImporter = Depends(get_importer),
) -> ImportRunResponse:
    """Run one import for a label and return its summary."""
    summary = await importer.run(label_id, dry_run=dry_run)
    return ImportRunResponse.from_summary(summary)
