"""Schema-validated command protocol for agent callers."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .adapter import format_interactive, format_structured
from .base import ActionRegistry
from .context import ConversationContextManager, merge_queries
from .engine import Pagination, SemanticSearchEngine
from .errors import DiscoveryError, IndexCorruptedError, ParseAmbiguity, UnknownParameter, ValidationError
from .models import ParsedQuery
from .parser import QueryParser

logger = logging.getLogger(__name__)


class CommandModel(BaseModel):
    """Base for command schemas; unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")


class SemanticParams(CommandModel):
    keywords: List[str] = Field(default_factory=list)
    objects: List[str] = Field(default_factory=list)
    scenes: List[str] = Field(default_factory=list)
    mood: List[str] = Field(default_factory=list)


class SpatialParams(CommandModel):
    location: Optional[str] = None


class DateRangeParams(CommandModel):
    start: date
    end: date


class TemporalParams(CommandModel):
    year: Optional[int] = None
    relative_period: Optional[str] = None
    date_range: Optional[DateRangeParams] = None
    start_month: Optional[int] = Field(None, ge=1, le=12)
    end_month: Optional[int] = Field(None, ge=1, le=12)


class PeopleParams(CommandModel):
    named_people: List[str] = Field(default_factory=list)
    relationship: Optional[str] = None
    age_group: Optional[str] = None
    group_size: Optional[Literal["solo", "couple", "group"]] = None


class TechnicalParams(CommandModel):
    camera: Optional[str] = None


class PageParams(CommandModel):
    limit: Optional[int] = Field(None, ge=0)
    offset: int = Field(0, ge=0)


class SearchParams(PageParams):
    query: Optional[str] = Field(None, description="Natural-language query; structured groups override it")
    semantic: Optional[SemanticParams] = None
    spatial: Optional[SpatialParams] = None
    temporal: Optional[TemporalParams] = None
    people: Optional[PeopleParams] = None
    technical: Optional[TechnicalParams] = None


class ProcessQueryParams(PageParams):
    query: str = Field(..., min_length=1)
    conversation_id: str = "default"


class TextParams(CommandModel):
    query: str = Field(..., min_length=1)


class PhotoIdsParams(CommandModel):
    photo_ids: List[str] = Field(..., min_length=1)


class AddToAlbumParams(PhotoIdsParams):
    album: str = Field(..., min_length=1)


class DownloadPhotosParams(PhotoIdsParams):
    format: Literal["original", "jpeg", "zip"] = "original"


class DeletePhotosParams(PhotoIdsParams):
    confirmed: bool = False


class AgentCommand(CommandModel):
    action: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


QUERY_COMMANDS: Dict[str, Type[CommandModel]] = {
    "search": SearchParams,
    "process_query": ProcessQueryParams,
    "parse_query": TextParams,
    "validate_query": TextParams,
    "suggest_refinements": TextParams,
}
SIDE_EFFECT_COMMANDS: Dict[str, Type[CommandModel]] = {
    "select_photos": PhotoIdsParams,
    "add_to_album": AddToAlbumParams,
    "download_photos": DownloadPhotosParams,
    "delete_photos": DeletePhotosParams,
}
IRREVERSIBLE_COMMANDS = ("delete_photos",)
COMMAND_SCHEMAS: Dict[str, Type[CommandModel]] = {**QUERY_COMMANDS, **SIDE_EFFECT_COMMANDS}


@dataclass
class CommandResult:
    """Structured outcome of an agent command; failures are values, not exceptions."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    structured_data: Optional[Dict[str, Any]] = None

    @classmethod
    def failure(cls, error: DiscoveryError, data: Optional[Dict[str, Any]] = None) -> "CommandResult":
        return cls(success=False, data=data, error=error.message, error_type=error.code)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
            result["error_type"] = self.error_type
        if self.structured_data is not None:
            result["structured_data"] = self.structured_data
        return result


def _to_discovery_error(error: PydanticValidationError, action: Optional[str] = None) -> ValidationError:
    """Translate a pydantic error, naming unknown keys by dotted path."""
    errors = error.errors()
    first = next((e for e in errors if e.get("type") == "extra_forbidden"), errors[0])
    path = ".".join(str(part) for part in first.get("loc", ()))
    if first.get("type") == "extra_forbidden":
        return UnknownParameter(path, action=action)
    return ValidationError(f"Invalid parameter '{path}': {first.get('msg')}", field=path or None)


def validate_command(command: Any) -> Tuple[AgentCommand, CommandModel]:
    """Validate a raw command against its action's schema.

    Raises:
        ValidationError: For a malformed envelope, unknown action or invalid value
        UnknownParameter: For a parameter key outside the schema
    """
    if not isinstance(command, dict):
        raise ValidationError("Command must be an object with 'action' and 'parameters'")
    try:
        envelope = AgentCommand.model_validate(command)
    except PydanticValidationError as e:
        raise _to_discovery_error(e)

    schema = COMMAND_SCHEMAS.get(envelope.action)
    if schema is None:
        raise ValidationError(
            f"Unknown action: {envelope.action}. Supported actions: {', '.join(COMMAND_SCHEMAS)}",
            field="action",
        )
    try:
        params = schema.model_validate(envelope.parameters)
    except PydanticValidationError as e:
        raise _to_discovery_error(e, envelope.action)
    return envelope, params


class AgentCommandProcessor:
    """Route validated agent commands through the parser, context manager and engine.

    Side-effecting commands are handed to the injected ``ActionRegistry``.
    Without a registry the processor returns the action plan instead.
    """

    def __init__(
        self,
        parser: QueryParser,
        engine: SemanticSearchEngine,
        contexts: ConversationContextManager,
        registry: Optional[ActionRegistry] = None,
        base_url: str = "",
    ):
        self.parser = parser
        self.engine = engine
        self.contexts = contexts
        self.registry = registry
        self.base_url = base_url

    async def process(self, command: Any) -> CommandResult:
        """Validate and execute one command.

        Raises:
            IndexCorruptedError: The only failure not returned as a value
        """
        try:
            envelope, params = validate_command(command)
            logger.debug(f"Executing agent command {envelope.action}")
            if envelope.action in SIDE_EFFECT_COMMANDS:
                return self._execute_side_effect(envelope.action, params)
            handler = getattr(self, f"_{envelope.action}")
            return await handler(params)
        except IndexCorruptedError:
            raise
        except DiscoveryError as e:
            logger.info(f"Agent command failed: {e.message}")
            return CommandResult.failure(e)

    async def _search(self, params: SearchParams) -> CommandResult:
        query = ParsedQuery()
        if params.query:
            query = self.parser.extract_parameters(params.query)
        groups = params.model_dump(include=set(ParsedQuery.FILTER_GROUPS), exclude_none=True)
        if groups:
            try:
                query = merge_queries(query, ParsedQuery.from_dict(groups))
            except ValueError as e:
                raise ValidationError(str(e))
        if query.is_empty() and params.query:
            return self._parse_failed(params.query)
        return await self._run_search(query, params, params.query)

    async def _process_query(self, params: ProcessQueryParams) -> CommandResult:
        query = self.contexts.process_query(params.query, params.conversation_id)
        if query.is_empty():
            return self._parse_failed(params.query)
        result = await self._run_search(query, params, params.query)
        context = self.contexts.get_context(params.conversation_id)
        result.data["context"] = {
            "conversation_id": params.conversation_id,
            "turns": context.turns,
            "decision": context.last_decision,
            "query": query.to_dict(),
        }
        return result

    async def _parse_query(self, params: TextParams) -> CommandResult:
        tokenized = self.parser.tokenize(params.query)
        intent = self.parser.extract_intent(params.query)
        parameters = self.parser.extract_parameters(params.query, intent.type)
        data = tokenized.to_dict()
        data.update({"intent": intent.to_dict(), "parameters": parameters.to_dict()})
        return CommandResult(success=True, data=data)

    async def _validate_query(self, params: TextParams) -> CommandResult:
        return CommandResult(success=True, data=self.parser.validate_query(params.query).to_dict())

    async def _suggest_refinements(self, params: TextParams) -> CommandResult:
        suggestions = self.parser.suggest_refinements(params.query)
        return CommandResult(success=True, data={"suggestions": [s.to_dict() for s in suggestions]})

    async def _run_search(self, query: ParsedQuery, page: PageParams, text: Optional[str]) -> CommandResult:
        result = await self.engine.search(query, Pagination(limit=page.limit, offset=page.offset))
        return CommandResult(
            success=True,
            data=format_interactive(result),
            structured_data=format_structured(result, text, self.base_url),
        )

    def _parse_failed(self, text: str) -> CommandResult:
        error = ParseAmbiguity(f"Could not extract any search parameters from '{text}'")
        suggestions = self.parser.suggest_refinements(text)
        return CommandResult.failure(error, data={"suggestions": [s.to_dict() for s in suggestions]})

    def _execute_side_effect(self, action: str, params: CommandModel) -> CommandResult:
        parameters = params.model_dump()
        if action in IRREVERSIBLE_COMMANDS and not parameters.get("confirmed"):
            raise ValidationError(f"{action} is irreversible and requires confirmed: true", field="confirmed")

        unknown = [pid for pid in parameters["photo_ids"] if pid not in self.engine.index.photos]
        if unknown:
            raise ValidationError(f"Unknown photo id: {unknown[0]}", field="photo_ids")

        if self.registry is None:
            return CommandResult(success=True, data={
                "executed": False,
                "action_plan": {"action": action, "parameters": parameters},
            })
        if not self.registry.supports(action):
            raise ValidationError(f"Action registry does not support '{action}'", field="action")
        try:
            outcome = self.registry.execute(action, parameters)
        except DiscoveryError:
            raise
        except Exception as e:
            logger.error(f"Action {action} failed: {e}", exc_info=True)
            return CommandResult(success=False, error=f"Action {action} failed: {e}", error_type="execution_error")
        return CommandResult(success=True, data={"executed": True, "action": action, "result": outcome})
