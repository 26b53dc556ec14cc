"""FastAPI web interface for photo-discovery."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..discovery.context import merge_queries
from ..discovery.errors import DiscoveryError, IndexCorruptedError, ParseAmbiguity, ValidationError
from ..discovery.models import ParsedQuery
from ..discovery.providers import DirectoryPhotoProvider, JsonCollectionProvider
from ..discovery.service import PhotoDiscoveryService
from .config import WebConfig, get_default_config

logger = logging.getLogger(__name__)


# Pydantic models for request/response


class IndexRequest(BaseModel):
    photos: Optional[List[Dict[str, Any]]] = Field(None, description="Photo records to index")
    path: Optional[str] = Field(None, description="JSON collection file or image directory to index")


class IndexResponse(BaseModel):
    indexed: int
    skipped: List[Dict[str, Any]]
    build_time_ms: float


class SearchRequest(BaseModel):
    query: Optional[str] = Field(None, description="Natural-language query")
    filters: Optional[Dict[str, Any]] = Field(None, description="Structured filter groups; override the text")
    limit: Optional[int] = Field(None, description="Maximum results to return")
    offset: int = Field(0, description="Number of results to skip")
    format: Literal["interactive", "structured"] = Field("interactive", description="Output profile")


class TextRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Natural-language query")


class ConversationRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Next utterance of the conversation")
    conversation_id: str = Field("default", description="Conversation identifier")
    limit: Optional[int] = Field(None, description="Maximum results to return")
    offset: int = Field(0, description="Number of results to skip")


class HealthResponse(BaseModel):
    status: str
    version: str
    indexed_photos: int


def load_collection(service: PhotoDiscoveryService, path: str) -> None:
    """Index a JSON collection file or image directory."""
    collection = Path(path).expanduser()
    if collection.is_dir():
        records = DirectoryPhotoProvider(collection).load_photos()
    else:
        records = JsonCollectionProvider(collection).load_records()
    service.index_photos(records)


def create_app(config: Optional[WebConfig] = None, service: Optional[PhotoDiscoveryService] = None) -> FastAPI:
    """Create the API application around a discovery service."""
    config = config or get_default_config()
    if service is None:
        service = PhotoDiscoveryService(config=config.search, base_url=config.base_url)
        if config.collection_path:
            try:
                load_collection(service, config.collection_path)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not load collection {config.collection_path}: {e}")

    app = FastAPI(
        title="photo-discovery API",
        description="Semantic photo search with natural-language queries",
        version=__version__,
    )
    app.state.service = service
    app.state.config = config

    # Enable CORS for frontend development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DiscoveryError)
    async def discovery_error_handler(request: Request, exc: DiscoveryError):
        if isinstance(exc, IndexCorruptedError):
            logger.error(f"Index corrupted: {exc.message}")
            return JSONResponse(status_code=503, content=exc.to_dict())
        status_code = 422 if isinstance(exc, ValidationError) else 400
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/api/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(status="ok", version=__version__, indexed_photos=len(service.index))

    @app.get("/api/stats")
    async def stats():
        return service.stats()

    @app.post("/api/index", response_model=IndexResponse)
    async def index_photos(request: IndexRequest):
        """Replace the index with the given records or collection."""
        if request.photos is not None:
            index = await service.index_photos_async(request.photos)
        elif request.path:
            try:
                load_collection(service, request.path)
            except (OSError, ValueError) as e:
                raise ValidationError(f"Could not load collection: {e}", field="path")
            index = service.index
        else:
            raise ValidationError("Provide either 'photos' or 'path'", field="photos")
        return IndexResponse(
            indexed=len(index),
            skipped=[error.to_dict() for error in index.skipped],
            build_time_ms=index.build_time_ms,
        )

    @app.post("/api/search")
    async def search(request: SearchRequest):
        """Search with text, structured filters, or both."""
        query = service.extract_parameters(request.query) if request.query else ParsedQuery()
        if request.filters:
            try:
                filters = ParsedQuery.from_dict(request.filters)
            except ValueError as e:
                raise ValidationError(str(e), field="filters")
            query = merge_queries(query, filters)
        if query.is_empty() and request.query:
            suggestions = service.suggest_refinements(request.query)
            error = ParseAmbiguity(f"Could not extract any search parameters from '{request.query}'")
            content = error.to_dict()
            content["suggestions"] = [s.to_dict() for s in suggestions]
            return JSONResponse(status_code=400, content=content)

        result = await service.search(query, {"limit": request.limit, "offset": request.offset})
        if request.format == "structured":
            return service.format_structured(result, request.query)
        return service.format_interactive(result)

    @app.post("/api/parse")
    async def parse(request: TextRequest):
        tokenized = service.tokenize(request.query)
        intent = service.extract_intent(request.query)
        data = tokenized.to_dict()
        data["intent"] = intent.to_dict()
        data["parameters"] = service.extract_parameters(request.query, intent.type).to_dict()
        return data

    @app.post("/api/validate")
    async def validate(request: TextRequest):
        data = service.validate_query(request.query).to_dict()
        data["suggestions"] = [s.to_dict() for s in service.suggest_refinements(request.query)]
        return data

    @app.post("/api/query")
    async def conversational_query(request: ConversationRequest):
        """Fold an utterance into its conversation and search with the result."""
        query = service.process_query(request.query, request.conversation_id)
        context = service.get_context(request.conversation_id)
        data: Dict[str, Any] = {
            "context": {
                "conversation_id": request.conversation_id,
                "turns": context.turns,
                "decision": context.last_decision,
                "query": query.to_dict(),
            }
        }
        if query.is_empty():
            data["suggestions"] = [s.to_dict() for s in service.suggest_refinements(request.query)]
            data["results"] = None
            return data
        result = await service.search(query, {"limit": request.limit, "offset": request.offset})
        data["results"] = service.format_interactive(result)
        return data

    @app.delete("/api/query/{conversation_id}")
    async def reset_conversation(conversation_id: str):
        return {"conversation_id": conversation_id, "reset": service.reset_context(conversation_id)}

    @app.post("/api/agent/command")
    async def agent_command(command: Dict[str, Any]):
        """Execute a schema-validated agent command."""
        result = await service.process_agent_command(command)
        return JSONResponse(status_code=200 if result.success else 400, content=jsonable_encoder(result.to_dict()))

    return app


app = create_app()
