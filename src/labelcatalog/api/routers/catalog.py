"""Read API over the local catalog, served through fallback read chains."""

from typing import Any

from fastapi import APIRouter, Depends

from labelcatalog.api.dependencies import get_reconciler
from labelcatalog.application.services.fallback_reader import FallbackQueryReconciler

router = APIRouter()


@router.get("/types")
async def list_entity_types(
    reconciler: FallbackQueryReconciler = Depends(get_reconciler),
) -> dict[str, list[str]]:
    return {"entity_types": reconciler.entity_types}


# Yo, the response always carries meta.source so the UI can tell "real data" from the
# simplified query or the placeholder. 404/503/422 come from the exception handlers.
@router.get("/{entity_type}/{key}")
async def read_entity(
    entity_type: str,
    key: str,
    reconciler: FallbackQueryReconciler = Depends(get_reconciler),
) -> dict[str, Any]:
    """Fetch releases/artists (by label id), tracks (by release id) or one entity by id."""
    result = await reconciler.fetch(entity_type, key)
    return result.to_dict()
