"""Error taxonomy for the photo discovery engine."""

from typing import Any, Dict, Optional


class DiscoveryError(Exception):
    """Base class for all discovery errors.

    Errors that reach a user or an agent are converted to structured values
    with ``to_dict`` instead of being raised across the public surface.
    """

    code = "discovery_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a structured failure value."""
        data: Dict[str, Any] = {"type": self.code, "message": self.message}
        if self.details:
            data["details"] = dict(self.details)
        return data


class ParseAmbiguity(DiscoveryError):
    """Intent or entities were recognized with too little confidence."""

    code = "parse_ambiguity"


class ValidationError(DiscoveryError):
    """A query or command field has an invalid value."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        if field is not None:
            details["field"] = field
        super().__init__(message, **details)
        self.field = field


class UnknownParameter(ValidationError):
    """An agent command referenced a parameter key outside its schema."""

    code = "unknown_parameter"

    def __init__(self, key: str, action: Optional[str] = None):
        details = {"action": action} if action else {}
        super().__init__(f"Unknown parameter: {key}", field=key, **details)
        self.key = key


class ExecutionTimeout(DiscoveryError):
    """A search exceeded its soft deadline; results are partial."""

    code = "execution_timeout"


class IndexingError(DiscoveryError):
    """A single photo record could not be indexed and was skipped."""

    code = "indexing_error"

    def __init__(self, message: str, position: int, photo_id: Optional[str] = None):
        super().__init__(message, position=position, photo_id=photo_id)
        self.position = position
        self.photo_id = photo_id


class IndexCorruptedError(DiscoveryError):
    """The index references data it does not hold. Re-index to recover."""

    code = "index_corrupted"
