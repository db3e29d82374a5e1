"""Data types shared by the input router components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class EntityType(str, Enum):
    """Kinds of entities extracted from user input."""
    PROCESS = "process"
    METRIC = "metric"
    THRESHOLD = "threshold"
    ACTION = "action"
    STATUS = "status"


class ActionType(str, Enum):
    """Management operations the assistant can perform."""
    RESTART = "restart"
    STOP = "stop"
    START = "start"
    STATUS = "status"
    LOGS = "logs"
    METRICS = "metrics"
    INFO = "info"


class SafetyLevel(str, Enum):
    """How much care an action needs before it runs."""
    SAFE = "safe"
    CAUTION = "caution"
    DANGEROUS = "dangerous"


class Intent(str, Enum):
    """Classified purpose of a user turn."""
    COMMAND = "command"
    QUESTION = "question"
    HYBRID = "hybrid"
    DIRECT_ACTION = "direct_action"


ALL_TARGET = "all"


@dataclass
class ExtractedEntity:
    """A typed keyword or span found in the input."""
    type: EntityType
    value: str
    confidence: float
    position: Optional[Tuple[int, int]] = None  # (start, end)


@dataclass
class Action:
    """A candidate management operation."""
    type: ActionType
    safety: SafetyLevel
    description: str
    target: Optional[str] = None  # process name or "all"
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_command(self) -> str:
        """Equivalent slash command, e.g. ``/restart api``."""
        if self.target:
            return f"/{self.type.value} {self.target}"
        return f"/{self.type.value}"


@dataclass
class AIActionDetection:
    """Validated result of asking the LLM to detect an action."""
    action: Optional[ActionType]
    target: Optional[str]
    confidence: float
    original_text: str
    detected_language: str = "Unknown"

    @classmethod
    def null(cls, original_text: str) -> 'AIActionDetection':
        """Detection meaning 'no action found'."""
        return cls(action=None, target=None, confidence=0.0, original_text=original_text)


@dataclass(frozen=True)
class InputAnalysis:
    """Outcome of analyzing one user turn."""
    intent: Intent
    confidence: float
    entities: Tuple[ExtractedEntity, ...]
    suggested_actions: Tuple[Action, ...]
    requires_confirmation: bool
    original_input: str
    processed_command: Optional[str] = None
    action_confidence: Optional[float] = None

    @property
    def process_names(self) -> List[str]:
        return [e.value for e in self.entities if e.type == EntityType.PROCESS]

    @property
    def action_entities(self) -> List[ExtractedEntity]:
        return [e for e in self.entities if e.type == EntityType.ACTION]
