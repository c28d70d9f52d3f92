"""
Document management API routes.
Handles knowledge base ingestion, listing, and deletion.
"""
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from ..context import AppContext, get_context
from ..errors import UpstreamError
from ..logging_config import logger
from ..schemas import DocumentRequest

router = APIRouter(prefix="/documents", tags=["documents"])

# Upload limits
MAX_FILES_PER_UPLOAD = 5
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB per file
TEXT_EXTENSIONS = (".txt", ".md", ".csv")


# ==================== Document Ingestion ====================

@router.post("")
async def create_document(payload: DocumentRequest, ctx: AppContext = Depends(get_context)):
    """
    Add a document to the knowledge base.

    Process:
    1. Store the document
    2. Split content into overlapping chunks
    3. Embed each chunk
    4. Write the vectors to the index
    """
    if not payload.title or not payload.content:
        raise HTTPException(status_code=400, detail="Title and content are required")

    try:
        result = await ctx.ingestion.ingest(payload.title, payload.content)
    except UpstreamError as e:
        logger.error("Ingestion failed", title=payload.title, exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to ingest document")
    except Exception as e:
        logger.error("Unexpected ingestion error", title=payload.title, exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to ingest document")

    return {"success": True, "document": result.as_dict()}


@router.post("/upload")
async def upload_documents(
    files: List[UploadFile] = File(...),
    ctx: AppContext = Depends(get_context),
):
    """
    Ingest plain-text files (.txt, .md, .csv).
    Each file becomes a document titled with its name minus the extension.
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")

    if len(files) > MAX_FILES_PER_UPLOAD:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files. Maximum {MAX_FILES_PER_UPLOAD} files per upload."
        )

    # Validate everything before ingesting anything
    pending = []
    for f in files:
        filename = f.filename or ""
        title, ext = os.path.splitext(filename)
        if ext.lower() not in TEXT_EXTENSIONS:
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported file type for '{filename}'. Allowed: {', '.join(TEXT_EXTENSIONS)}",
            )

        # Size comes from the spooled file, before anything is read into memory
        f.file.seek(0, os.SEEK_END)
        size_bytes = f.file.tell()
        f.file.seek(0)
        if size_bytes > MAX_FILE_SIZE_BYTES:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"File '{filename}' is too large. "
                    f"Max size is {MAX_FILE_SIZE_BYTES // (1024*1024)} MB."
                ),
            )

        raw = await f.read()
        content = raw.decode("utf-8", errors="ignore")
        if not content.strip():
            logger.warning("Empty document", filename=filename)
            # skip files with no text
            continue
        pending.append((title or filename, content))

    inserted = []
    try:
        for title, content in pending:
            result = await ctx.ingestion.ingest(title, content)
            inserted.append(result.as_dict())
    except Exception as e:
        logger.error("Upload ingestion failed", ingested=len(inserted), exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to ingest document")

    return {"success": True, "documents": inserted}


# ==================== Document Listing ====================

@router.get("")
def list_documents(ctx: AppContext = Depends(get_context)):
    """Returns all documents with chunk counts, newest first."""
    try:
        return {"documents": ctx.ingestion.list_documents()}
    except Exception as e:
        logger.error("Error listing documents", exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to get documents")


# ==================== Document Deletion ====================

@router.delete("")
async def delete_document(
    id: Optional[str] = Query(None),
    ctx: AppContext = Depends(get_context),
):
    """
    Deletes a document, its chunks and its vectors.
    Unknown ids are a no-op.
    """
    if not id:
        raise HTTPException(status_code=400, detail="Document ID is required")

    try:
        await ctx.ingestion.delete_document(id)
    except Exception as e:
        logger.error("Error deleting document", doc_id=id, exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to delete document")

    return {"success": True}
