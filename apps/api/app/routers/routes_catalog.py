from fastapi import APIRouter, Depends

from reco_user.catalog_service import CatalogService

from app.deps.deps import get_catalog_service
from app.schemas import CatalogIngestRequest, CatalogIngestResponse

router = APIRouter(prefix="/v2/catalog", tags=["catalog"])


@router.post("/items", response_model=CatalogIngestResponse, status_code=201)
async def ingest_items(
    req: CatalogIngestRequest,
    service: CatalogService = Depends(get_catalog_service),
):
    n = await service.ingest_items(req.items)
    return CatalogIngestResponse(items_written=n, embedding_dim=service.encoder.dim)


@router.post("/embeddings/regenerate", response_model=CatalogIngestResponse)
async def regenerate_embeddings(
    service: CatalogService = Depends(get_catalog_service),
):
    n = await service.regenerate_embeddings()
    return CatalogIngestResponse(items_written=n, embedding_dim=service.encoder.dim)
