"""Keyword and token based entity extraction."""

import re
from typing import List, Optional, Tuple

from .types import ALL_TARGET, AIActionDetection, ActionType, EntityType, ExtractedEntity


ACTION_KEYWORDS = [
    ('restart', ActionType.RESTART),
    ('reboot', ActionType.RESTART),
    ('reload', ActionType.RESTART),
    ('stop', ActionType.STOP),
    ('kill', ActionType.STOP),
    ('terminate', ActionType.STOP),
    ('start', ActionType.START),
    ('launch', ActionType.START),
    ('run', ActionType.START),
    ('status', ActionType.STATUS),
    ('info', ActionType.STATUS),
    ('state', ActionType.STATUS),
    ('logs', ActionType.LOGS),
    ('log', ActionType.LOGS),
    ('metrics', ActionType.METRICS),
]

METRIC_KEYWORDS = ['memory', 'cpu', 'usage', 'performance', 'speed']
STATUS_KEYWORDS = ['online', 'offline', 'errored', 'stopped', 'running']

COMMON_WORDS = frozenset([
    'is', 'are', 'was', 'were', 'the', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'of', 'with', 'by', 'from', 'up', 'about', 'into', 'through', 'during', 'before',
    'after', 'above', 'below', 'between', 'among', 'this', 'that', 'these', 'those',
    'my', 'your', 'his', 'her', 'its', 'our', 'their', 'all', 'some', 'any', 'no',
    'not', 'can', 'could', 'should', 'would', 'will', 'may', 'might', 'must',
    'slow', 'fast', 'why', 'what', 'how', 'when', 'where', 'who', 'which',
    # action vocabulary is never a process name
    'restart', 'reboot', 'reload', 'stop', 'kill', 'terminate', 'start', 'launch', 'run',
    'status', 'info', 'state', 'logs', 'log', 'metrics', 'show', 'display', 'list', 'check',
])

TOKEN_PATTERN = re.compile(r'\b([a-zA-Z0-9\-_]+(?:\.[a-zA-Z0-9]+)?)\b')

PROCESS_CONFIDENCE = 0.7
ACTION_CONFIDENCE = 0.9
KEYWORD_CONFIDENCE = 0.8


def _occurrences(text: str, word: str) -> List[Tuple[int, int]]:
    spans = []
    start = text.find(word)
    while start != -1:
        spans.append((start, start + len(word)))
        start = text.find(word, start + 1)
    return spans


class EntityExtractor:
    """Produces process, action, metric and status entities from raw input.

    Extraction is deliberately permissive: every non-common token is a
    candidate process name, and later stages decide what to act on.
    """

    def extract_entities(self, text: str,
                         ai_detection: Optional[AIActionDetection] = None) -> List[ExtractedEntity]:
        entities: List[ExtractedEntity] = []
        lower = text.lower()

        if ai_detection and ai_detection.action and ai_detection.confidence > 0.5:
            entities.append(ExtractedEntity(
                type=EntityType.ACTION,
                value=ai_detection.action.value,
                confidence=ai_detection.confidence,
            ))
            if ai_detection.target and ai_detection.target != ALL_TARGET:
                entities.append(ExtractedEntity(
                    type=EntityType.PROCESS,
                    value=ai_detection.target,
                    confidence=ai_detection.confidence,
                ))

        for match in TOKEN_PATTERN.finditer(text):
            token = match.group(1)
            if not self.is_common_word(token):
                entities.append(ExtractedEntity(
                    type=EntityType.PROCESS,
                    value=token,
                    confidence=PROCESS_CONFIDENCE,
                    position=match.span(1),
                ))

        for keyword, action_type in self._matched_action_keywords(lower):
            entities.append(ExtractedEntity(
                type=EntityType.ACTION,
                value=action_type.value,
                confidence=ACTION_CONFIDENCE,
            ))

        for keyword in METRIC_KEYWORDS:
            if keyword in lower:
                entities.append(ExtractedEntity(EntityType.METRIC, keyword, KEYWORD_CONFIDENCE))

        for keyword in STATUS_KEYWORDS:
            if keyword in lower:
                entities.append(ExtractedEntity(EntityType.STATUS, keyword, KEYWORD_CONFIDENCE))

        return entities

    def _matched_action_keywords(self, lower: str) -> List[Tuple[str, ActionType]]:
        """Action keywords present in the text, minus those only seen inside a longer keyword."""
        spans = {keyword: _occurrences(lower, keyword) for keyword, _ in ACTION_KEYWORDS}
        matched = [(keyword, action_type) for keyword, action_type in ACTION_KEYWORDS if spans[keyword]]

        result = []
        for keyword, action_type in matched:
            longer_spans = [
                span
                for other, _ in matched
                if len(other) > len(keyword) and keyword in other
                for span in spans[other]
            ]
            standalone = [
                (start, end) for start, end in spans[keyword]
                if not any(o_start <= start and end <= o_end for o_start, o_end in longer_spans)
            ]
            if standalone:
                result.append((keyword, action_type))
        return result

    def is_common_word(self, word: str) -> bool:
        return word.lower() in COMMON_WORDS
