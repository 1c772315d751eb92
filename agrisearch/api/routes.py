"""API routes for semantic index sessions."""

from enum import Enum
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field

from agrisearch.api.sessions import SessionRegistry, get_registry
from agrisearch.backends.models import BackendConfig, BackendKind, BackendStatus
from agrisearch.backends.policy import SelectionDecision, SelectionReason, SelectionSignals
from agrisearch.config import LocalModelVariant
from agrisearch.documents.models import Document
from agrisearch.exceptions import DocumentError, ErrorCode
from agrisearch.indexing.models import IndexingReport
from agrisearch.llm.models import GenerationResult
from agrisearch.llm.prompts import ReportType
from agrisearch.logging_config import get_logger
from agrisearch.search.models import SearchOptions, SearchResult
from agrisearch.service import SemanticIndex
from agrisearch.state import IndexState
from agrisearch.vectorstore.models import StorageStats

logger = get_logger(__name__)


router = APIRouter(prefix="/api/v1/sessions/{user_id}", tags=["Semantic Index"])


async def get_index(
    user_id: str,
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> SemanticIndex:
    """Resolve the session for the user in the path."""
    return await registry.get(user_id)


IndexDep = Annotated[SemanticIndex, Depends(get_index)]


class InitializeBackendRequest(BaseModel):
    """Request body for backend initialization.

    Omitted fields keep their current value.
    """

    kind: BackendKind | None = Field(default=None, description="Backend kind")
    embedding_model: str | None = Field(
        default=None,
        description="Embedding model for the selected kind",
    )
    local_model: LocalModelVariant | None = Field(
        default=None,
        description="On-device chat model variant",
    )


class SelectionMode(str, Enum):
    """Selection modes a user can pick."""

    AUTO = "auto"
    MANUAL = "manual"
    PRIVACY = "privacy"
    BATTERY_SAVING = "battery_saving"


class SelectionModeRequest(BaseModel):
    """Request body for changing the selection mode."""

    mode: SelectionMode = Field(description="Selection mode")
    use_local: bool = Field(default=False, description="Backend for manual mode")


class SelectionResponse(BaseModel):
    """Current backend selection."""

    prefer_local: bool = Field(description="Inference runs on device")
    reason: SelectionReason = Field(description="Why this backend was chosen")
    auto_mode: bool = Field(description="Selection follows signals")
    message: str = Field(description="User-facing status message")


class IndexRequest(BaseModel):
    """Request body for indexing documents."""

    documents: list[Document] = Field(min_length=1, description="Documents to index")


class SearchRequest(BaseModel):
    """Request body for similarity search."""

    query: str = Field(description="Free-text query")
    options: SearchOptions | None = Field(default=None, description="Search options")


class SearchResponse(BaseModel):
    """Response from similarity search."""

    results: list[SearchResult] = Field(description="Ranked results")
    total: int = Field(description="Number of results")


class ClearResponse(BaseModel):
    """Response from clearing an index."""

    removed: int = Field(description="Records removed")


class ImportResponse(BaseModel):
    """Response from importing an export."""

    imported: int = Field(description="Records imported")


class SummaryRequest(BaseModel):
    """Request body for a report summary."""

    report_type: ReportType = Field(description="Kind of report")
    report_data: dict[str, Any] = Field(description="Report values")


def apply_overrides(config: BackendConfig, request: InitializeBackendRequest) -> BackendConfig:
    """Build the config an initialization request asks for."""
    if request.kind is not None:
        config = config.with_kind(request.kind)

    if request.embedding_model is not None:
        if config.kind == BackendKind.LOCAL:
            local = config.local.model_copy(update={"embedding_model": request.embedding_model})
            config = config.model_copy(update={"local": local})
        else:
            remote = config.remote.model_copy(update={"embedding_model": request.embedding_model})
            config = config.model_copy(update={"remote": remote})

    if request.local_model is not None:
        local = config.local.model_copy(update={"llm_model": request.local_model})
        config = config.model_copy(update={"local": local})

    return config


def selection_response(index: SemanticIndex, decision: SelectionDecision) -> SelectionResponse:
    """Describe a selection decision."""
    return SelectionResponse(
        prefer_local=decision.prefer_local,
        reason=decision.reason,
        auto_mode=index.selection.is_auto_mode,
        message=index.selection.status_message(),
    )


@router.post("/backend/initialize", response_model=BackendStatus)
async def initialize_backend(
    index: IndexDep,
    request: InitializeBackendRequest | None = None,
) -> BackendStatus:
    """Initialize the inference backend, switching configuration if asked."""
    config = index.selector.config
    if request is not None:
        config = apply_overrides(config, request)
    return await index.initialize_backend(config)


@router.get("/backend", response_model=BackendStatus)
async def backend_status(index: IndexDep) -> BackendStatus:
    """Report the backend lifecycle state."""
    return index.backend_status()


@router.get("/selection", response_model=SelectionResponse)
async def get_selection(index: IndexDep) -> SelectionResponse:
    """Report the current backend selection."""
    return selection_response(index, index.selection.decision)


@router.put("/selection/signals", response_model=SelectionResponse)
async def update_signals(index: IndexDep, signals: SelectionSignals) -> SelectionResponse:
    """Feed device and network signals to the selection policy."""
    decision = await index.apply_selection(signals)
    return selection_response(index, decision)


@router.put("/selection/mode", response_model=SelectionResponse)
async def set_selection_mode(
    index: IndexDep,
    request: SelectionModeRequest,
) -> SelectionResponse:
    """Switch between auto, manual, privacy and battery saving modes."""
    if request.mode == SelectionMode.AUTO:
        decision = await index.enable_auto_mode()
    elif request.mode == SelectionMode.MANUAL:
        decision = await index.set_manual_mode(request.use_local)
    elif request.mode == SelectionMode.PRIVACY:
        decision = await index.enable_privacy_mode()
    else:
        decision = await index.enable_battery_saving_mode()
    return selection_response(index, decision)


@router.post("/documents", response_model=IndexingReport)
async def index_documents(index: IndexDep, request: IndexRequest) -> IndexingReport:
    """Embed and store documents."""
    return await index.index_documents(request.documents)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(index: IndexDep, document_id: str) -> Response:
    """Delete one document from the index."""
    if not await index.delete_document(document_id):
        raise DocumentError(
            f"Document not found: {document_id}",
            code=ErrorCode.DOCUMENT_NOT_FOUND,
            details={"id": document_id},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/search", response_model=SearchResponse)
async def search(index: IndexDep, request: SearchRequest) -> SearchResponse:
    """Find the documents most similar to a query."""
    results = await index.search_similar(request.query, request.options)
    return SearchResponse(results=results, total=len(results))


@router.get("/storage", response_model=StorageStats)
async def storage_info(index: IndexDep) -> StorageStats:
    """Summarize the stored index."""
    return await index.get_storage_info()


@router.delete("/storage", response_model=ClearResponse)
async def clear_index(index: IndexDep) -> ClearResponse:
    """Delete every stored record."""
    return ClearResponse(removed=await index.clear_index())


@router.get("/storage/export")
async def export_index(index: IndexDep) -> Response:
    """Download the index as JSON."""
    return Response(content=await index.export_index(), media_type="application/json")


@router.post("/storage/import", response_model=ImportResponse)
async def import_index(index: IndexDep, request: Request) -> ImportResponse:
    """Load a previously exported index."""
    payload = (await request.body()).decode("utf-8", errors="replace")
    return ImportResponse(imported=await index.import_index(payload))


@router.get("/state", response_model=IndexState)
async def index_state(index: IndexDep) -> IndexState:
    """Report indexing and search activity."""
    return index.state()


@router.post("/summaries", response_model=GenerationResult)
async def summarize_report(index: IndexDep, request: SummaryRequest) -> GenerationResult:
    """Summarize a soil or water report with the active backend."""
    return await index.generate_summary(request.report_type, request.report_data)
