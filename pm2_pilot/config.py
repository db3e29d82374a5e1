"""Configuration management for PM2 Pilot."""

import os
import json
from pathlib import Path
from typing import Optional, Dict, Any, Union
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
import logging

try:
    import yaml
    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False

try:
    import tomli
    TOML_AVAILABLE = True
except ImportError:
    TOML_AVAILABLE = False


VALID_PROVIDERS = ("openai", "anthropic", "gemini")
VALID_CONFIRMATION_LEVELS = ("none", "destructive", "all")


class LLMConfig(BaseModel):
    """Configuration for LLM integration."""

    openai_api_key: Optional[str] = Field(None, description="OpenAI API key")
    anthropic_api_key: Optional[str] = Field(None, description="Anthropic API key")
    gemini_api_key: Optional[str] = Field(None, description="Google Gemini API key")
    provider: Optional[str] = Field(None, description="Preferred provider (openai, anthropic, gemini)")
    default_model: Optional[str] = Field(None, description="Model override for the selected provider")
    temperature: float = Field(default=0.1, description="Sampling temperature")
    max_tokens: int = Field(default=1000, description="Maximum tokens per completion")
    request_timeout: int = Field(default=30, description="Provider request timeout in seconds")

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: Optional[str]) -> Optional[str]:
        """Validate provider name against supported providers."""
        if v is None or not v.strip():
            return None
        v = v.strip().lower()
        if v not in VALID_PROVIDERS:
            raise ValueError(f"Unknown provider '{v}'. Expected one of: {', '.join(VALID_PROVIDERS)}")
        return v

    @field_validator('temperature')
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate temperature is within the range providers accept."""
        if v < 0 or v > 2:
            raise ValueError("temperature must be between 0 and 2")
        return v

    @field_validator('max_tokens')
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        """Validate max_tokens is positive."""
        if v <= 0:
            raise ValueError("max_tokens must be positive")
        return v

    @field_validator('request_timeout')
    @classmethod
    def validate_request_timeout(cls, v: int) -> int:
        """Validate request_timeout is reasonable."""
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        if v > 300:  # 5 minutes
            raise ValueError("request_timeout should not exceed 300 seconds")
        return v


class PM2Config(BaseModel):
    """Configuration for the PM2 process manager connection."""

    pm2_binary: str = Field(default="pm2", description="Path or name of the pm2 executable")
    log_lines: int = Field(default=50, description="Log lines to read per process for analysis")
    command_timeout: int = Field(default=60, description="Timeout for a single pm2 invocation in seconds")

    @field_validator('pm2_binary')
    @classmethod
    def validate_binary(cls, v: str) -> str:
        """Validate the binary name is not empty."""
        if not v or not v.strip():
            raise ValueError("pm2_binary cannot be empty")
        return v.strip()

    @field_validator('log_lines', 'command_timeout')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate numeric limits are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v


class AssistantConfig(BaseModel):
    """Behaviour of the conversational assistant."""

    auto_execute: bool = Field(default=True, description="Execute safe actions without asking")
    confirmation_level: str = Field(default="destructive", description="none, destructive or all")
    max_history: int = Field(default=10, description="Conversation turns kept in memory")
    history_file: str = Field(
        default=str(Path.home() / '.pm2_pilot_history'),
        description="Readline history file for interactive mode",
    )

    @field_validator('confirmation_level')
    @classmethod
    def validate_confirmation_level(cls, v: str) -> str:
        """Validate confirmation level."""
        v = v.strip().lower()
        if v not in VALID_CONFIRMATION_LEVELS:
            raise ValueError(
                f"confirmation_level must be one of: {', '.join(VALID_CONFIRMATION_LEVELS)}"
            )
        return v

    @field_validator('max_history')
    @classmethod
    def validate_max_history(cls, v: int) -> int:
        """Validate history bound."""
        if v < 1:
            raise ValueError("max_history must be at least 1")
        return v


class UIConfig(BaseModel):
    """Configuration for UI appearance."""

    use_colors: bool = Field(default=True, description="Enable colored output")
    show_confidence: bool = Field(default=False, description="Show intent and confidence after each turn")


class AppConfig(BaseModel):
    """Main application configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    pm2: PM2Config = Field(default_factory=PM2Config)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    ui: UIConfig = Field(default_factory=UIConfig, description="UI configuration")
    log_level: str = Field(default="INFO", description="Logging level")


def load_config_file(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from a file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger = logging.getLogger(__name__)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                if not YAML_AVAILABLE:
                    raise ImportError("PyYAML is required for YAML config files. Install with: pip install pyyaml")
                return yaml.safe_load(f) or {}

            elif config_path.suffix.lower() == '.toml':
                if not TOML_AVAILABLE:
                    raise ImportError("tomli is required for TOML config files. Install with: pip install tomli")
                return tomli.load(f.buffer)

            elif config_path.suffix.lower() == '.json':
                return json.load(f) or {}

            else:
                raise ValueError(f"Unsupported config file format: {config_path.suffix}")

    except Exception as e:
        logger.error(f"Failed to load config file {config_path}: {e}")
        raise


def find_config_file() -> Optional[Path]:
    """Find configuration file in standard locations."""
    search_paths = [
        Path.cwd() / "config.yaml",
        Path.cwd() / "config.yml",
        Path.cwd() / "config.toml",
        Path.cwd() / "config.json",
        Path.cwd() / ".pm2-pilot.yaml",
        Path.cwd() / ".pm2-pilot.yml",
        Path.cwd() / ".pm2-pilot.toml",
        Path.cwd() / ".pm2-pilot.json",
        Path.home() / ".config" / "pm2-pilot" / "config.yaml",
        Path.home() / ".config" / "pm2-pilot" / "config.yml",
        Path.home() / ".config" / "pm2-pilot" / "config.toml",
        Path.home() / ".config" / "pm2-pilot" / "config.json",
    ]

    for config_path in search_paths:
        if config_path.exists():
            return config_path

    return None


def merge_config(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """Merge configuration dictionaries with override taking precedence."""
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value

    return merged


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def load_config(config_file: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load configuration from multiple sources with priority order.

    Priority (highest to lowest):
    1. Environment variables
    2. Specified config file (if provided)
    3. Auto-discovered config file
    4. Default values
    """
    logger = logging.getLogger(__name__)

    config_data: Dict[str, Any] = {}

    # 1. Load from config file (lowest priority)
    if config_file:
        config_path = Path(config_file)
        if config_path.exists():
            config_data = load_config_file(config_path)
            logger.info(f"Loaded configuration from: {config_path}")
        else:
            raise FileNotFoundError(f"Specified config file not found: {config_path}")
    else:
        config_path = find_config_file()
        if config_path:
            config_data = load_config_file(config_path)
            logger.info(f"Auto-discovered configuration file: {config_path}")

    # 2. Load .env file (medium priority)
    load_dotenv()

    # 3. Override with environment variables (highest priority)
    env_config = {
        "llm": {
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY"),
            "gemini_api_key": os.getenv("GEMINI_API_KEY"),
            "provider": os.getenv("AI_PROVIDER"),
            "default_model": os.getenv("DEFAULT_MODEL"),
            "temperature": os.getenv("AI_TEMPERATURE"),
            "max_tokens": os.getenv("AI_MAX_TOKENS"),
            "request_timeout": os.getenv("AI_REQUEST_TIMEOUT"),
        },
        "pm2": {
            "pm2_binary": os.getenv("PM2_BINARY"),
            "log_lines": os.getenv("PM2_LOG_LINES"),
            "command_timeout": os.getenv("PM2_COMMAND_TIMEOUT"),
        },
        "assistant": {
            "auto_execute": os.getenv("PM2_PILOT_AUTO_EXECUTE"),
            "confirmation_level": os.getenv("PM2_PILOT_CONFIRMATION_LEVEL"),
            "max_history": os.getenv("PM2_PILOT_MAX_HISTORY"),
            "history_file": os.getenv("PM2_PILOT_HISTORY_FILE"),
        },
        "ui": {
            "use_colors": os.getenv("PM2_PILOT_USE_COLORS"),
            "show_confidence": os.getenv("PM2_PILOT_SHOW_CONFIDENCE"),
        },
        "log_level": os.getenv("LOG_LEVEL"),
    }

    # Remove None values from env config
    def remove_none_values(d):
        if isinstance(d, dict):
            return {k: remove_none_values(v) for k, v in d.items() if v is not None}
        return d

    env_config = remove_none_values(env_config)

    final_config = merge_config(config_data, env_config)

    llm_data = final_config.get("llm", {})
    llm_config = LLMConfig(
        openai_api_key=llm_data.get("openai_api_key"),
        anthropic_api_key=llm_data.get("anthropic_api_key"),
        gemini_api_key=llm_data.get("gemini_api_key"),
        provider=llm_data.get("provider"),
        default_model=llm_data.get("default_model"),
        temperature=float(llm_data.get("temperature", 0.1)),
        max_tokens=int(llm_data.get("max_tokens", 1000)),
        request_timeout=int(llm_data.get("request_timeout", 30)),
    )

    pm2_data = final_config.get("pm2", {})
    pm2_config = PM2Config(
        pm2_binary=pm2_data.get("pm2_binary", "pm2"),
        log_lines=int(pm2_data.get("log_lines", 50)),
        command_timeout=int(pm2_data.get("command_timeout", 60)),
    )

    assistant_data = final_config.get("assistant", {})
    assistant_kwargs: Dict[str, Any] = {
        "auto_execute": _as_bool(assistant_data.get("auto_execute"), True),
        "confirmation_level": assistant_data.get("confirmation_level", "destructive"),
        "max_history": int(assistant_data.get("max_history", 10)),
    }
    if assistant_data.get("history_file"):
        assistant_kwargs["history_file"] = assistant_data["history_file"]
    assistant_config = AssistantConfig(**assistant_kwargs)

    ui_data = final_config.get("ui", {})
    ui_config = UIConfig(
        use_colors=_as_bool(ui_data.get("use_colors"), True),
        show_confidence=_as_bool(ui_data.get("show_confidence"), False),
    )

    return AppConfig(
        llm=llm_config,
        pm2=pm2_config,
        assistant=assistant_config,
        ui=ui_config,
        log_level=final_config.get("log_level", "INFO"),
    )
