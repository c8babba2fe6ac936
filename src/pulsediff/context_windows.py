"""Model registry: context window sizes used for usage summaries."""

from dataclasses import dataclass

DEFAULT_CONTEXT_WINDOW = 200_000


@dataclass
class ModelConfig:
    provider: str
    model_id: str
    context_window: int


MODELS: dict[str, ModelConfig] = {
    # OpenRouter - Anthropic
    "anthropic/claude-opus-4.5": ModelConfig("openrouter", "anthropic/claude-opus-4.5", 200_000),
    "anthropic/claude-sonnet-4.5": ModelConfig("openrouter", "anthropic/claude-sonnet-4.5", 200_000),
    "anthropic/claude-haiku-4.5": ModelConfig("openrouter", "anthropic/claude-haiku-4.5", 200_000),
    "anthropic/claude-3.5-sonnet": ModelConfig("openrouter", "anthropic/claude-3.5-sonnet", 200_000),
    "anthropic/claude-3-haiku": ModelConfig("openrouter", "anthropic/claude-3-haiku", 200_000),
    # OpenRouter - OpenAI
    "openai/gpt-5.1": ModelConfig("openrouter", "openai/gpt-5.1", 400_000),
    "openai/gpt-5": ModelConfig("openrouter", "openai/gpt-5", 272_000),
    "openai/gpt-5-mini": ModelConfig("openrouter", "openai/gpt-5-mini", 128_000),
    "openai/gpt-4o": ModelConfig("openrouter", "openai/gpt-4o", 128_000),
    "openai/gpt-4o-mini": ModelConfig("openrouter", "openai/gpt-4o-mini", 128_000),
    # OpenRouter - Google
    "google/gemini-2.5-pro": ModelConfig("openrouter", "google/gemini-2.5-pro", 2_000_000),
    "google/gemini-2.5-flash": ModelConfig("openrouter", "google/gemini-2.5-flash", 1_000_000),
    # Google direct
    "gemini-2.5-pro": ModelConfig("google", "gemini-2.5-pro", 2_000_000),
    "gemini-2.5-flash": ModelConfig("google", "gemini-2.5-flash", 1_000_000),
    "gemini-2.0-flash": ModelConfig("google", "gemini-2.0-flash", 1_000_000),
    # xAI
    "grok-4": ModelConfig("xai", "grok-4", 128_000),
    "grok-4-fast-reasoning": ModelConfig("xai", "grok-4-fast-reasoning", 2_000_000),
    "grok-3": ModelConfig("xai", "grok-3", 128_000),
    # GLM
    "glm-4.6": ModelConfig("glm", "glm-4.6", 200_000),
    "glm-4.5": ModelConfig("glm", "glm-4.5", 128_000),
    "glm-4.5-air": ModelConfig("glm", "glm-4.5-air", 128_000),
    # Ollama (local) - varies with local configuration
    "llama3.1": ModelConfig("ollama", "llama3.1", 128_000),
    "qwen2.5-coder": ModelConfig("ollama", "qwen2.5-coder", 32_000),
    "deepseek-r1": ModelConfig("ollama", "deepseek-r1", 64_000),
    "gemma2": ModelConfig("ollama", "gemma2", 8_192),
    "mistral": ModelConfig("ollama", "mistral", 32_000),
}


def get_context_window(model: str) -> int:
    """Context window size for a model, falling back to DEFAULT_CONTEXT_WINDOW."""
    config = MODELS.get(model)
    if config is None:
        return DEFAULT_CONTEXT_WINDOW
    return config.context_window
