from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

class Provider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"

class ModelConfig(BaseModel):
    model: str
    provider: Provider

MODEL_ALIASES: Dict[str, ModelConfig] = {
    # Gemini (3.x first, default)
    "3-flash": ModelConfig(model="gemini-3-flash-preview", provider=Provider.GEMINI),
    "3-pro": ModelConfig(model="gemini-3-pro-preview", provider=Provider.GEMINI),
    "2.5-flash": ModelConfig(model="gemini-2.5-flash", provider=Provider.GEMINI),
    "2.5-pro": ModelConfig(model="gemini-2.5-pro", provider=Provider.GEMINI),
    # OpenAI
    "gpt-5": ModelConfig(model="gpt-5", provider=Provider.OPENAI),
    "gpt-5-mini": ModelConfig(model="gpt-5-mini", provider=Provider.OPENAI),
    "gpt-5-nano": ModelConfig(model="gpt-5-nano", provider=Provider.OPENAI),
}

def resolve_model(alias: str) -> ModelConfig:
    """Maps a short model alias to the concrete model and its provider."""
    config = MODEL_ALIASES.get(alias)
    if config is None:
        valid_options = ", ".join(MODEL_ALIASES)
        raise ValueError(f"Unknown model: {alias}\nValid options: {valid_options}")
    return config

class GeneralConfig(BaseModel):
    model: str = "3-flash"
    fps: float = Field(default=1.0, gt=0, le=60)
    extract_frames: Optional[Path] = None
    extensions: List[str] = Field(default_factory=lambda: [".mp4", ".mov", ".avi", ".mkv", ".webm"])
    debug: bool = False

    @field_validator('model')
    @classmethod
    def validate_model(cls, v: str) -> str:
        resolve_model(v)
        return v

    @field_validator('extensions')
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        return [e.lower() if e.startswith(".") else f".{e.lower()}" for e in v]

class QueueConfig(BaseModel):
    # Upper bound on how long an idle driver sleeps before re-checking an open batch
    wait_interval_seconds: float = Field(default=1.0, gt=0)

class RetentionConfig(BaseModel):
    sweep_interval_seconds: float = Field(default=600.0, gt=0)
    retention_seconds: float = Field(default=3600.0, gt=0)

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
