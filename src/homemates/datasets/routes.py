"""Dataset API routes (``/database``).

Owners upload CSV/Excel sheets for their agents and ingest listings found
through Perplexity. Lead sheets also create tenants and leads.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import pandas as pd
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.auth.jwt import require_owner
from homemates.datasets.importer import import_tenants
from homemates.db.database import get_db
from homemates.db.models import DataType, Dataset, User
from homemates.schemas import DatasetOut, dataset_records
from homemates.tabular import TableParseError, data_health, read_table, to_records
from homemates.uploads import read_spreadsheet_upload, remove_upload, store_upload
from homemates_shared.perplexity import (
    PerplexityClient,
    dedupe_results,
    get_perplexity_client,
    ingest_queries,
)
from homemates_shared.schemas import Listing, SearchResult

logger = logging.getLogger("homemates-datasets")

router = APIRouter(prefix="/database", tags=["Datasets"])


# =============================================================================
# Request/Response Models
# =============================================================================


class DatasetListResponse(BaseModel):
    datasets: list[DatasetOut]


class DatasetDetailResponse(BaseModel):
    dataset: DatasetOut
    records: list[dict[str, Any]]


class UploadResponse(BaseModel):
    dataset: DatasetOut
    data_health: dict[str, Any]
    tenants_imported: int | None = None
    leads_created: int | None = None
    errors: list[dict[str, Any]] = Field(default_factory=list)


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    max_results: int = Field(20, ge=1, le=20)


class SearchResponse(BaseModel):
    results: list[SearchResult]
    listings: list[Listing]


class IngestRequest(BaseModel):
    city: str = Field(default_factory=lambda: config.DEFAULT_CITY, min_length=1)


class IngestResponse(BaseModel):
    city: str
    total_results: int
    total_listings: int
    results: list[SearchResult]
    listings: list[Listing]
    dataset: DatasetOut


async def _get_dataset(db: AsyncSession, dataset_id: UUID, owner: User) -> Dataset:
    dataset = await db.get(Dataset, dataset_id)
    if dataset is None or dataset.owner_user_id != owner.id:
        raise HTTPException(status_code=404, detail="Dataset not found")
    return dataset


# =============================================================================
# Routes
# =============================================================================


@router.get("", response_model=DatasetListResponse)
async def list_datasets(
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """List the owner's datasets, newest first (records omitted)."""
    result = await db.execute(
        select(Dataset)
        .where(Dataset.owner_user_id == owner.id)
        .order_by(Dataset.uploaded_at.desc())
    )
    return DatasetListResponse(datasets=[DatasetOut.from_model(d) for d in result.scalars()])


@router.get("/{dataset_id}", response_model=DatasetDetailResponse)
async def get_dataset(
    dataset_id: UUID,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    dataset = await _get_dataset(db, dataset_id, owner)
    return DatasetDetailResponse(
        dataset=DatasetOut.from_model(dataset), records=dataset_records(dataset)
    )


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_dataset(
    file: UploadFile = File(...),
    data_type: DataType = Form(DataType.LEADS),
    agent_id: str | None = Form(None),
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Store and profile an uploaded sheet.

    Lead sheets are also imported as tenants and matched into leads.
    """
    content = await read_spreadsheet_upload(file)
    filename = file.filename or "upload.csv"
    try:
        frame = read_table(content, filename)
    except TableParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    records = to_records(frame)
    if not records:
        raise HTTPException(status_code=400, detail="File has no rows")

    health = data_health(frame)
    path = store_upload(content, filename)
    try:
        dataset = Dataset(
            owner_user_id=owner.id,
            file_name=filename,
            file_url=str(path),
            data_type=data_type.value,
            row_count=len(records),
            agent_id=agent_id or None,
            columns_json=json.dumps(list(frame.columns)),
            records_json=json.dumps(records, default=str),
            data_health_json=json.dumps(health),
        )
        db.add(dataset)
        await db.flush()

        response = UploadResponse(dataset=DatasetOut.from_model(dataset), data_health=health)
        if data_type == DataType.LEADS:
            summary = await import_tenants(db, records)
            response.tenants_imported = summary.imported
            response.leads_created = summary.leads_created
            response.errors = summary.errors
    except Exception:
        remove_upload(str(path))
        raise

    logger.info(f"Dataset {dataset.id} uploaded by {owner.id}: {filename} ({len(records)} rows)")
    return response


@router.delete("/{dataset_id}")
async def delete_dataset(
    dataset_id: UUID,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Delete a dataset and its stored file."""
    dataset = await _get_dataset(db, dataset_id, owner)
    file_url = dataset.file_url
    await db.delete(dataset)
    await db.flush()
    remove_upload(file_url)
    return {"message": "Dataset deleted"}


@router.post("/search", response_model=SearchResponse)
async def search_listings(
    request: SearchRequest,
    client: PerplexityClient = Depends(get_perplexity_client),
):
    """Search the web for listings and extract them. No login needed."""
    results = await client.search(request.query, request.max_results)
    listings = await client.extract_listings(results)
    return SearchResponse(results=results, listings=listings)


@router.post("/ingest", response_model=IngestResponse)
async def ingest_listings(
    request: IngestRequest,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: PerplexityClient = Depends(get_perplexity_client),
):
    """Search for a city's listings and store them as a ``listings`` dataset."""
    city = request.city.strip()
    results: list[SearchResult] = []
    for query in ingest_queries(city):
        results.extend(await client.search(query))
    results = dedupe_results(results)
    listings = await client.extract_listings(results, city)

    records = [listing.model_dump() for listing in listings]
    columns = list(Listing.model_fields)
    frame = pd.DataFrame(records, columns=columns)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")

    dataset = Dataset(
        owner_user_id=owner.id,
        file_name=f"ingest_{city.lower().replace(' ', '_')}_{stamp}.json",
        data_type=DataType.LISTINGS.value,
        row_count=len(records),
        columns_json=json.dumps(columns),
        records_json=json.dumps(records),
        data_health_json=json.dumps(data_health(frame)),
    )
    db.add(dataset)
    await db.flush()

    logger.info(
        f"Ingest for {city} finished: {len(results)} results, {len(listings)} listings"
    )
    return IngestResponse(
        city=city,
        total_results=len(results),
        total_listings=len(listings),
        results=results,
        listings=listings,
        dataset=DatasetOut.from_model(dataset),
    )
