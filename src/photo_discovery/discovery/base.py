"""Capability interfaces for recognition strategies and external collaborators."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .models import Entity, Intent, PhotoRecord


class EntityRecognizer(ABC):
    """Abstract base class for entity recognition strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the strategy name used by this recognizer."""
        pass

    @abstractmethod
    def recognize(self, text: str) -> List[Entity]:
        """Recognize entities in query text.

        Args:
            text: Raw query text

        Returns:
            Non-overlapping entities ordered by position, each with a
            confidence in [0, 1]
        """
        pass


class IntentClassifier(ABC):
    """Abstract base class for intent classification strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the strategy name used by this classifier."""
        pass

    @abstractmethod
    def classify(self, text: str) -> Intent:
        """Classify the purpose of a query.

        Args:
            text: Raw query text

        Returns:
            Intent with a confidence reflecting match strength
        """
        pass


class PhotoProvider(ABC):
    """Source of already-annotated photo records (storage/album backend)."""

    @abstractmethod
    def load_photos(self) -> List[PhotoRecord]:
        """Load every photo record of the collection."""
        pass


class ActionRegistry(ABC):
    """External executor for side-effecting actions (select, create, delete).

    The discovery engine only hands over action identifiers and parameters;
    it never performs the side effect itself.
    """

    @abstractmethod
    def execute(self, action: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Execute an action.

        Args:
            action: Action identifier, e.g. "add_to_album"
            parameters: Validated parameters for the action

        Returns:
            Result payload reported back to the caller
        """
        pass

    def supports(self, action: str) -> bool:
        """Whether this registry can execute the action."""
        return True
