"""Natural-language input routing for PM2 Pilot."""

from .types import (
    ALL_TARGET,
    AIActionDetection,
    Action,
    ActionType,
    EntityType,
    ExtractedEntity,
    InputAnalysis,
    Intent,
    SafetyLevel,
)
from .pattern_matcher import PatternMatcher, default_pattern_matcher
from .entity_extractor import EntityExtractor
from .action_detector import ActionDetector, action_safety, get_safety_level
from .input_analyzer import InputAnalyzer
from .input_router import AIInputRouter

__all__ = [
    'ALL_TARGET',
    'AIActionDetection',
    'AIInputRouter',
    'Action',
    'ActionDetector',
    'ActionType',
    'EntityExtractor',
    'EntityType',
    'ExtractedEntity',
    'InputAnalysis',
    'InputAnalyzer',
    'Intent',
    'PatternMatcher',
    'SafetyLevel',
    'action_safety',
    'default_pattern_matcher',
    'get_safety_level',
]
