from typing import Optional, List
from datetime import datetime
from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Header
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from domain.hash_constants import BLOCK_SIZE
from infrastructure.api_key_validator import ApiKeyValidator
from infrastructure.file_system_cache_store import FileSystemCacheStore


class Config:
    def __init__(
        self,
        cache_dir: str,
        is_public: bool = False,
        api_keys: Optional[List[str]] = None
    ):
        self.cache_dir = cache_dir
        self.is_public = is_public
        self.api_keys = api_keys or []


class CacheEntryDTO(BaseModel):
    manager: str = Field(..., description="Package manager (npm, composer, etc.)")
    manager_version: str = Field(..., description="Version of the manager that produced the archive")
    hash: str = Field(..., description="Fingerprint of the manifest the archive was built from")
    size_bytes: int
    modified_at: datetime
    download_url: str = Field(..., description="Path to download the archive")


class CacheStatsDTO(BaseModel):
    total_archives: int
    total_managers: int
    cache_size_bytes: int


config: Optional[Config] = None
cache_store: Optional[FileSystemCacheStore] = None
api_key_validator: Optional[ApiKeyValidator] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    global cache_store
    if config:
        cache_store = FileSystemCacheStore(Path(config.cache_dir))
    yield


app = FastAPI(
    title="dep-install-cache server",
    description="Shares archived install directories with other machines",
    version="1.0.0",
    lifespan=lifespan
)


def validate_api_key(authorization: Optional[str] = Header(None)) -> None:
    """Validate API key using Bearer token format."""
    if config and not config.is_public:
        if not api_key_validator:
            raise HTTPException(status_code=500, detail="Server configuration error")

        if not authorization:
            raise HTTPException(status_code=401, detail="Missing Authorization Bearer <APIKEY>")

        if not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Invalid authorization format. Use Bearer <APIKEY>")

        if not api_key_validator.validate_authorization(authorization):
            raise HTTPException(status_code=401, detail="Invalid API key")


def _require_store() -> FileSystemCacheStore:
    if not cache_store:
        raise HTTPException(status_code=500, detail="Server not properly configured")
    return cache_store


@app.get("/v1/stats", response_model=CacheStatsDTO, dependencies=[Depends(validate_api_key)])
async def cache_stats():
    store = _require_store()
    return CacheStatsDTO(**store.get_cache_stats())


@app.get("/v1/archives", response_model=List[CacheEntryDTO], dependencies=[Depends(validate_api_key)])
async def list_archives(manager: Optional[str] = None):
    """
    List cached archives, optionally only those of one manager.
    """
    store = _require_store()
    return [
        CacheEntryDTO(
            manager=entry.cli_name,
            manager_version=entry.cli_version,
            hash=entry.fingerprint,
            size_bytes=entry.size_bytes,
            modified_at=entry.modified_at,
            download_url=f"/v1/archives/{entry.cli_name}/{entry.cli_version}/{entry.path.name}"
        )
        for entry in store.list_entries(manager)
    ]


@app.get("/v1/archives/{manager}/{manager_version}/{file_name}", dependencies=[Depends(validate_api_key)])
async def download_archive(manager: str, manager_version: str, file_name: str):
    """
    Download a cached archive.

    The archive is streamed in blocks rather than loaded into memory.
    """
    store = _require_store()
    archive_path = store.resolve_entry(manager, manager_version, file_name)

    if not archive_path:
        raise HTTPException(status_code=404, detail="Archive not found")

    try:
        f = open(archive_path, 'rb')
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Error retrieving archive: {str(e)}")

    def iterfile():
        with f:
            while chunk := f.read(BLOCK_SIZE):
                yield chunk

    return StreamingResponse(
        iterfile(),
        media_type="application/gzip",
        headers={
            "Content-Disposition": f"attachment; filename={file_name}"
        }
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


def initialize_app(
    cache_dir: str,
    is_public: bool = False,
    api_keys: Optional[List[str]] = None
):
    """Initialize the FastAPI application with configuration."""
    global config, api_key_validator

    config = Config(
        cache_dir=cache_dir,
        is_public=is_public,
        api_keys=api_keys
    )

    api_key_validator = ApiKeyValidator(api_keys, is_public=is_public)

    # Create cache directory if it doesn't exist
    Path(cache_dir).mkdir(parents=True, exist_ok=True)

    return app
