"""Ingestion endpoints: websites and uploaded files.

Routes
------
POST /ingest/website     Body: {"url": "...", "namespace"?, "organisation"?, "limit"?}
POST /ingest/upload      Multipart: files[], website?, namespace?, organisation?
GET  /ingest/namespaces  Chunk counts per namespace

Ingestion outcomes (no pages, no content, embedding failures) are reported
in the ``success``/``error`` fields of a 200 response; only malformed
requests are rejected with an HTTP error.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from knowledgebase.db.chunks import list_namespaces
from knowledgebase.namespace import resolve_namespace
from knowledgebase.rag.ingestor import (
    FileIngestResult,
    UploadedFile,
    WebsiteIngestResult,
    ingest_files,
    ingest_website,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebsiteIngestRequest(BaseModel):
    url: str = Field(..., min_length=1)
    namespace: Optional[str] = None
    organisation: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


class WebsiteIngestResponse(_CamelModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    chunks: int = 0
    pages_processed: int = 0
    pages_indexed: int = 0
    namespace: str
    url: Optional[str] = None


class FileIngestResponse(_CamelModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    chunks: int = 0
    docs: int = 0


class UploadResponse(_CamelModel):
    namespace: str
    files: Optional[FileIngestResponse] = None
    website: Optional[WebsiteIngestResponse] = None


class NamespaceInfo(BaseModel):
    namespace: str
    chunks: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/website", response_model=WebsiteIngestResponse)
def ingest_website_endpoint(body: WebsiteIngestRequest, request: Request) -> dict[str, Any]:
    """Discover and crawl a website, then chunk, embed and store its pages."""
    conn = request.app.state.db
    result = ingest_website(
        conn,
        body.url,
        namespace=body.namespace,
        organisation=body.organisation,
        limit=body.limit,
    )
    return result.to_dict()


@router.post("/upload", response_model=UploadResponse)
async def ingest_upload_endpoint(
    request: Request,
    files: List[UploadFile] = File(default=[]),
    website: Optional[str] = Form(default=None),
    namespace: Optional[str] = Form(default=None),
    organisation: Optional[str] = Form(default=None),
) -> dict[str, Any]:
    """Ingest uploaded files and/or a website into one namespace.

    The two streams are independent: a failure in one is reported in its own
    record and never prevents or undoes the other.
    """
    uploads = [f for f in files if f.filename]
    website_url = website.strip() if website and website.strip() else None
    if not uploads and website_url is None:
        raise HTTPException(
            status_code=422, detail="Provide at least one file or a website URL."
        )

    conn = request.app.state.db
    ns = resolve_namespace(namespace, organisation)
    response: dict[str, Any] = {"namespace": ns, "files": None, "website": None}

    if uploads:
        in_memory = [
            UploadedFile(
                filename=f.filename or "upload",
                data=await f.read(),
                content_type=f.content_type,
            )
            for f in uploads
        ]
        try:
            files_result = await run_in_threadpool(
                ingest_files, conn, in_memory, namespace=namespace, organisation=organisation
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("File ingestion into %r failed", ns)
            files_result = FileIngestResult(
                success=False, namespace=ns, error=f"File ingestion failed: {exc}"
            )
        response["files"] = files_result.to_dict()

    if website_url is not None:
        try:
            website_result = await run_in_threadpool(
                ingest_website, conn, website_url, namespace=namespace, organisation=organisation
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Website ingestion of %s failed", website_url)
            website_result = WebsiteIngestResult(
                success=False,
                namespace=ns,
                url=website_url,
                error=f"Website ingestion failed: {exc}",
            )
        response["website"] = website_result.to_dict()

    return response


@router.get("/namespaces", response_model=list[NamespaceInfo])
def list_namespaces_endpoint(request: Request) -> list[dict[str, Any]]:
    """Return every namespace that holds chunks, with its chunk count."""
    conn = request.app.state.db
    return [
        {"namespace": name, "chunks": count}
        for name, count in list_namespaces(conn)
    ]
