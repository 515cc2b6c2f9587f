"""Configuration settings and data models."""

from typing import Dict, Optional, Literal
from pydantic import BaseModel, Field, field_validator, model_validator
import yaml
from pathlib import Path

from debate_engine.types import PacingMode


class ModelConfig(BaseModel):
    """Configuration for the model behind one debate role."""

    name: str = Field(..., description="Model name (e.g., 'llama3.2:3b' for Ollama, 'openai/gpt-4' for OpenRouter)")
    provider: str = Field(default="ollama", description="Model provider (ollama, openrouter, mock)")
    personality: str = Field(default="neutral", description="Debate personality style")
    max_tokens: int = Field(default=400, description="Maximum tokens per response")
    temperature: float = Field(default=0.7, description="Model temperature")

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: str) -> str:
        valid_providers = {'ollama', 'openrouter', 'mock'}
        if v not in valid_providers:
            raise ValueError(f"Provider must be one of: {valid_providers}")
        return v


class DebateConfig(BaseModel):
    """Main debate configuration."""

    proposition: str = Field(..., description="Proposition being debated")
    format: str = Field(default="standard", description="Debate format")
    word_limit: int = Field(default=250, description="Word limit per turn")
    flow_mode: Literal["auto", "step"] = Field(
        default="auto", description="'step' pauses after every turn until resumed"
    )
    lively: bool = Field(default=False, description="Run with lively interruptions")


class OrchestratorConfig(BaseModel):
    """Retry, timeout and validation policy for turn execution."""

    max_retries: int = Field(default=3, ge=1, description="Agent attempts per generation")
    retry_delay_ms: int = Field(default=1000, ge=0, description="Initial backoff delay")
    max_retry_delay_ms: int = Field(default=15000, ge=0, description="Backoff ceiling")
    agent_timeout_ms: int = Field(default=30000, gt=0, description="Hard timeout per agent call")
    validate_utterances: bool = Field(default=True)
    max_validation_attempts: int = Field(default=2, ge=1)
    on_validation_exhausted: Literal["skip", "fail"] = Field(
        default="skip", description="Skip the turn with a system notice, or fail the debate"
    )
    persistence_retries: int = Field(default=3, ge=1)
    persistence_retry_delay_ms: int = Field(default=200, ge=0)
    broadcast_events: bool = Field(default=True)
    history_window: int = Field(default=6, ge=0, description="Prior utterances quoted verbatim")


class PacingProfile(BaseModel):
    """Streaming and evaluation cadence for one pacing mode."""

    evaluation_interval_ms: int
    chunk_size: int
    min_boundary_gap_ms: int
    allow_clause_boundaries: bool = False


PACING_CONFIG: dict[PacingMode, PacingProfile] = {
    PacingMode.SLOW: PacingProfile(evaluation_interval_ms=2000, chunk_size=100, min_boundary_gap_ms=3000),
    PacingMode.MEDIUM: PacingProfile(evaluation_interval_ms=1000, chunk_size=50, min_boundary_gap_ms=2000),
    PacingMode.FAST: PacingProfile(
        evaluation_interval_ms=500, chunk_size=30, min_boundary_gap_ms=1000, allow_clause_boundaries=True
    ),
    PacingMode.FRANTIC: PacingProfile(
        evaluation_interval_ms=250, chunk_size=20, min_boundary_gap_ms=500, allow_clause_boundaries=True
    ),
}


class LivelySettings(BaseModel):
    """Interruption tuning for lively debates. Every value is a tunable knob."""

    aggression_level: int = Field(default=2, ge=1, le=5)
    max_interrupts_per_minute: int = Field(default=2, ge=0)
    interrupt_cooldown_ms: int = Field(default=20000, ge=0)
    min_speaking_time_ms: int = Field(default=15000, ge=0)
    relevance_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    relevance_weight: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Discount applied to raw relevance"
    )
    contradiction_boost: float = Field(default=0.3, ge=0.0, le=1.0)
    pacing_mode: PacingMode = Field(default=PacingMode.MEDIUM)
    interjection_max_tokens: int = Field(default=60, gt=0)
    speech_rate_cps: float = Field(
        default=15.0, gt=0, description="Characters per second used to pace streamed chunks"
    )
    auto_interjections: bool = Field(default=True)

    @property
    def pacing(self) -> PacingProfile:
        return PACING_CONFIG[self.pacing_mode]

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "LivelySettings":
        if name not in LIVELY_PRESETS:
            raise ValueError(f"Unknown preset: {name}. Available: {list(LIVELY_PRESETS.keys())}")
        data = LIVELY_PRESETS[name].settings.model_dump()
        data.update(overrides)
        return cls(**data)


class LivelyPreset(BaseModel):
    """Named bundle of lively settings."""

    name: str
    display_name: str
    description: str
    settings: LivelySettings


LIVELY_PRESETS: dict[str, LivelyPreset] = {
    "calm": LivelyPreset(
        name="calm",
        display_name="Calm Discussion",
        description="Rare interruptions, speakers get plenty of time",
        settings=LivelySettings(
            aggression_level=1, max_interrupts_per_minute=1, interrupt_cooldown_ms=45000,
            min_speaking_time_ms=30000, relevance_threshold=0.9, pacing_mode=PacingMode.SLOW,
        ),
    ),
    "balanced": LivelyPreset(
        name="balanced",
        display_name="Balanced Debate",
        description="Occasional interruptions on strong contradictions",
        settings=LivelySettings(
            aggression_level=2, max_interrupts_per_minute=2, interrupt_cooldown_ms=20000,
            min_speaking_time_ms=15000, relevance_threshold=0.8, pacing_mode=PacingMode.MEDIUM,
        ),
    ),
    "heated": LivelyPreset(
        name="heated",
        display_name="Heated Exchange",
        description="Frequent interruptions and faster pacing",
        settings=LivelySettings(
            aggression_level=3, max_interrupts_per_minute=3, interrupt_cooldown_ms=15000,
            min_speaking_time_ms=10000, relevance_threshold=0.7, pacing_mode=PacingMode.FAST,
        ),
    ),
    "chaotic": LivelyPreset(
        name="chaotic",
        display_name="Chaotic Free-for-All",
        description="Maximum interruptions, minimal speaking time",
        settings=LivelySettings(
            aggression_level=5, max_interrupts_per_minute=5, interrupt_cooldown_ms=8000,
            min_speaking_time_ms=5000, relevance_threshold=0.6, pacing_mode=PacingMode.FRANTIC,
        ),
    ),
}


class OpenRouterConfig(BaseModel):
    """OpenRouter-specific configuration."""

    api_key: Optional[str] = Field(
        default=None, description="OpenRouter API key (can also be set via OPENROUTER_API_KEY env var)"
    )
    base_url: str = Field(
        default="https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )
    site_url: Optional[str] = Field(
        default=None, description="Your site URL for OpenRouter referrer tracking"
    )
    app_name: Optional[str] = Field(
        default="Agora Debate Engine", description="App name for OpenRouter tracking"
    )
    max_retries: int = Field(
        default=0, description="Client-level retries (turn retries are handled by the orchestrator)"
    )
    timeout: int = Field(
        default=60, description="API request timeout in seconds"
    )


class SystemConfig(BaseModel):
    """System-wide configuration."""

    ollama_base_url: str = Field(
        default="http://localhost:11434", description="Ollama API URL"
    )
    openrouter: OpenRouterConfig = Field(
        default_factory=OpenRouterConfig, description="OpenRouter-specific settings"
    )
    database_path: str = Field(default="debates.db", description="SQLite database file")
    event_queue_size: int = Field(default=256, gt=0, description="Buffered events per subscriber")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


REQUIRED_ROLES = ("pro", "con", "moderator")


class AppConfig(BaseModel):
    """Complete application configuration."""

    debate: DebateConfig
    models: Dict[str, ModelConfig]
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    lively: LivelySettings = Field(default_factory=LivelySettings)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @model_validator(mode="after")
    def validate_roles(self) -> "AppConfig":
        missing = [role for role in REQUIRED_ROLES if role not in self.models]
        if missing:
            raise ValueError(f"Models missing for roles: {missing}")
        return self

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        import json

        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        # Validate required sections
        required_sections = ["debate", "models", "system"]
        missing_sections = [
            section for section in required_sections if section not in data
        ]
        if missing_sections:
            raise ValueError(f"Missing required config sections: {missing_sections}")

        if not data.get("models") or len(data["models"]) == 0:
            raise ValueError(
                "Config must include at least one model in 'models' section"
            )

        return cls(**data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(mode="json", exclude_unset=True),
                f,
                default_flow_style=False,
                indent=2,
            )


def get_default_config() -> AppConfig:
    """Load default configuration from debate_config.json, creating it if needed."""
    config_path = Path("debate_config.json")
    if not config_path.exists():
        template_config = get_template_config()
        import json
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(template_config.model_dump(mode="json"), f, indent=2)
    return AppConfig.load_from_file(config_path)


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        debate=DebateConfig(
            proposition="Governments should regulate frontier artificial intelligence research.",
            format="standard",
            word_limit=250,
        ),
        models={
            "pro": ModelConfig(name="qwen2.5:7b", provider="ollama", personality="analytical"),
            "con": ModelConfig(name="llama3.2:3b", provider="ollama", personality="passionate"),
            "moderator": ModelConfig(
                name="qwen2.5:7b", provider="ollama", personality="neutral", temperature=0.4
            ),
        },
        orchestrator=OrchestratorConfig(),
        lively=LivelySettings.from_preset("balanced"),
        system=SystemConfig(
            ollama_base_url="http://localhost:11434",
            openrouter=OpenRouterConfig(
                api_key=None,  # Set your OpenRouter API key here or use OPENROUTER_API_KEY env var
            ),
            database_path="debates.db",
            log_level="INFO",
        ),
    )
