"""Tests for action building, safety levels and AI detection."""

import json
from itertools import product

import pytest

from pm2_pilot.router.action_detector import (
    ActionDetector,
    action_safety,
    build_action,
    get_safety_level,
)
from pm2_pilot.router.entity_extractor import EntityExtractor
from pm2_pilot.router.types import AIActionDetection, ActionType, SafetyLevel


READ_ONLY = [ActionType.STATUS, ActionType.LOGS, ActionType.METRICS, ActionType.INFO]


@pytest.fixture
def detector():
    return ActionDetector()


@pytest.fixture
def extractor():
    return EntityExtractor()


class TestSafety:
    """Safety is a pure function of type and target."""

    def test_per_type_levels(self):
        assert get_safety_level(ActionType.STOP) == SafetyLevel.DANGEROUS
        assert get_safety_level(ActionType.RESTART) == SafetyLevel.CAUTION
        assert get_safety_level(ActionType.START) == SafetyLevel.CAUTION
        for action_type in READ_ONLY:
            assert get_safety_level(action_type) == SafetyLevel.SAFE

    @pytest.mark.parametrize("action_type,target", product(list(ActionType), [None, "api", "all"]))
    def test_action_safety_is_deterministic(self, action_type, target):
        first = action_safety(action_type, target)
        # other calls in between must not influence the result
        action_safety(ActionType.STOP, "all")
        action_safety(ActionType.STATUS, None)
        assert action_safety(action_type, target) == first

    @pytest.mark.parametrize("action_type", READ_ONLY)
    def test_read_only_is_safe_even_on_all(self, action_type):
        assert action_safety(action_type, "all") == SafetyLevel.SAFE

    @pytest.mark.parametrize("action_type", [ActionType.RESTART, ActionType.STOP, ActionType.START])
    def test_mutating_all_is_dangerous(self, action_type):
        assert action_safety(action_type, "all") == SafetyLevel.DANGEROUS

    def test_detector_reuses_module_mapping(self, detector):
        for action_type in ActionType:
            assert detector.get_safety_level(action_type) == get_safety_level(action_type)


class TestBuildAction:

    def test_descriptions(self):
        assert build_action(ActionType.RESTART, "api").description == "restart api"
        assert build_action(ActionType.STOP, "all").description == "stop all processes"
        assert build_action(ActionType.STATUS).description == "status"

    def test_to_command(self):
        assert build_action(ActionType.LOGS, "api").to_command() == "/logs api"
        assert build_action(ActionType.METRICS).to_command() == "/metrics"


class TestExtractActions:
    """Test ActionDetector.extract_actions."""

    def test_ai_detection_round_trip(self, detector):
        detection = AIActionDetection(
            action=ActionType.RESTART, target="all", confidence=0.9, original_text="reload my instances"
        )
        actions = detector.extract_actions("reload my instances", [], detection)

        assert len(actions) == 1
        assert actions[0].type == ActionType.RESTART
        assert actions[0].target == "all"
        assert actions[0].safety == SafetyLevel.DANGEROUS

    def test_ai_detection_short_circuits_entities(self, detector, extractor):
        text = "stop worker"
        detection = AIActionDetection(
            action=ActionType.STATUS, target="api", confidence=0.6, original_text=text
        )
        actions = detector.extract_actions(text, extractor.extract_entities(text), detection)
        assert [(a.type, a.target) for a in actions] == [(ActionType.STATUS, "api")]

    def test_weak_ai_detection_falls_back(self, detector, extractor):
        text = "stop worker"
        detection = AIActionDetection(
            action=ActionType.STATUS, target="api", confidence=0.5, original_text=text
        )
        actions = detector.extract_actions(text, extractor.extract_entities(text), detection)
        assert [(a.type, a.target) for a in actions] == [(ActionType.STOP, "worker")]

    def test_batch_operation(self, detector, extractor):
        text = "stop everything"
        actions = detector.extract_actions(text, extractor.extract_entities(text))

        assert len(actions) == 1
        assert actions[0].type == ActionType.STOP
        assert actions[0].target == "all"
        assert actions[0].safety == SafetyLevel.DANGEROUS

    def test_batch_word_needs_word_boundary(self, detector, extractor):
        text = "restart install-service"
        actions = detector.extract_actions(text, extractor.extract_entities(text))
        assert [a.target for a in actions] == ["install-service"]

    def test_batch_without_action_is_empty(self, detector, extractor):
        text = "what about all of them"
        assert detector.extract_actions(text, extractor.extract_entities(text)) == []

    def test_pairs_every_action_with_every_process(self, detector, extractor):
        text = "restart api worker"
        actions = detector.extract_actions(text, extractor.extract_entities(text))
        assert [(a.type, a.target) for a in actions] == [
            (ActionType.RESTART, "api"),
            (ActionType.RESTART, "worker"),
        ]

    def test_untargeted_action(self, detector, extractor):
        text = "status"
        actions = detector.extract_actions(text, extractor.extract_entities(text))
        assert [(a.type, a.target) for a in actions] == [(ActionType.STATUS, None)]


class TestNormalizeDetection:
    """Untrusted LLM output degrades to safe defaults."""

    def test_valid_detection(self, detector):
        result = detector.normalize_detection(
            {"action": "Restart ", "target": "api", "confidence": 0.95, "detectedLanguage": "French"},
            "redémarre api",
        )
        assert result.action == ActionType.RESTART
        assert result.target == "api"
        assert result.confidence == 0.95
        assert result.detected_language == "French"
        assert result.original_text == "redémarre api"

    @pytest.mark.parametrize("parsed", [None, [], "restart", 42])
    def test_non_object(self, detector, parsed):
        result = detector.normalize_detection(parsed, "x")
        assert result.action is None
        assert result.confidence == 0.0

    def test_unknown_action(self, detector):
        result = detector.normalize_detection({"action": "delete", "confidence": 0.9}, "x")
        assert result.action is None

    def test_wrong_field_types(self, detector):
        result = detector.normalize_detection(
            {"action": 3, "target": ["api"], "confidence": "high", "detectedLanguage": 7}, "x"
        )
        assert result.action is None
        assert result.target is None
        assert result.confidence == 0.0
        assert result.detected_language == "Unknown"

    @pytest.mark.parametrize("raw,expected", [(1.7, 1.0), (-0.3, 0.0), (True, 0.0), (float("nan"), 0.0)])
    def test_confidence_clamped(self, detector, raw, expected):
        result = detector.normalize_detection({"action": "stop", "confidence": raw}, "x")
        assert result.confidence == expected

    @pytest.mark.parametrize("target", ["everything", "ALL", " all "])
    def test_all_targets_normalized(self, detector, target):
        result = detector.normalize_detection({"action": "stop", "target": target, "confidence": 0.9}, "x")
        assert result.target == "all"


class TestDetectActionsWithAI:
    """Test ActionDetector.detect_actions_with_ai."""

    @pytest.mark.asyncio
    async def test_without_client(self, detector):
        result = await detector.detect_actions_with_ai("restart api")
        assert result.action is None
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_strips_code_fences(self, mock_llm_client):
        payload = {"action": "stop", "target": "all", "confidence": 0.9, "detectedLanguage": "French"}
        mock_llm_client.query.return_value = f"```json\n{json.dumps(payload)}\n```"

        result = await ActionDetector(mock_llm_client).detect_actions_with_ai("arrête tout")

        assert result.action == ActionType.STOP
        assert result.target == "all"
        assert result.detected_language == "French"
        prompt = mock_llm_client.query.call_args[0][0]
        assert '"arrête tout"' in prompt

    @pytest.mark.asyncio
    async def test_unparsable_response(self, mock_llm_client):
        mock_llm_client.query.return_value = "I think you want to restart it"
        result = await ActionDetector(mock_llm_client).detect_actions_with_ai("restart it")
        assert result.action is None
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_provider_failure_never_raises(self, mock_llm_client):
        mock_llm_client.query.side_effect = RuntimeError("provider down")
        result = await ActionDetector(mock_llm_client).detect_actions_with_ai("restart api")
        assert result.action is None
        assert result.original_text == "restart api"
