"""Label API endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from labelcatalog.api.dependencies import get_label_cache
from labelcatalog.application.cache.label_cache import LabelCache

router = APIRouter()


class LabelResponse(BaseModel):
    id: str
    display_name: str
    slug: str | None = None
    variants: list[str]


@router.get("")
async def list_labels(
    labels: LabelCache = Depends(get_label_cache),
) -> list[LabelResponse]:
    return [
        LabelResponse(
            id=label.id,
            display_name=label.display_name,
            slug=label.slug,
            variants=list(label.variants),
        )
        for label in await labels.list_labels()
    ]


@router.post("/cache/invalidate")
async def invalidate_label_cache(
    label_id: str | None = Query(None, description="Drop one label; omit to clear all"),
    labels: LabelCache = Depends(get_label_cache),
) -> dict[str, object]:
    await labels.invalidate(label_id)
    return {"invalidated": label_id or "all", "stats": labels.get_stats()}
