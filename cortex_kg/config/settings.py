"""
CortexConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> brain = Brain(storage, user_id="u1")

    >>> # Explicit configuration
    >>> config = CortexConfig(
    ...     llm_model="meta/llama-3.3-70b-instruct",
    ...     graph_max_nodes=120,
    ... )
    >>> brain = Brain(storage, user_id="u1", config=config)

    >>> # From config file
    >>> config = CortexConfig.from_file("./cortex.toml")

Environment Variables:
    CORTEX_LLM_BASE_URL - OpenAI-compatible endpoint for the primary model
    CORTEX_LLM_MODEL - Primary chat model
    CORTEX_LLM_FALLBACK_MODEL - Fallback chat model
    CORTEX_SEARCH_TIMEOUT - Seconds before a search call is abandoned
    CORTEX_GRAPH_MAX_NODES - Node cap for graph visualization
    CORTEX_STRENGTH_INCREMENT - Strength added when an entity is seen again
    NVIDIA_API_KEY - API key for the primary model endpoint
    HUGGINGFACE_API_KEY - API key for the secondary (validation) models
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

try:
    import tomllib

    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return cast(dict[str, Any], tomllib.load(f))

except ImportError:
    import tomli

    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return cast(dict[str, Any], tomli.load(f))


class CortexConfig:
    """Configuration for cortex-kg."""

    # === Primary LLM Configuration ===

    llm_base_url: str = "https://integrate.api.nvidia.com/v1"
    """OpenAI-compatible endpoint serving the primary models"""

    llm_model: str = "meta/llama-3.3-70b-instruct"
    """Primary model for answers, summaries, and consensus merging"""

    llm_fallback_model: str = "mistralai/mistral-large-2-instruct"
    """Model tried when the primary model call fails"""

    llm_timeout: float = 60.0
    """Seconds per primary model call"""

    llm_max_retries: int = 2
    """Retries per primary model call (handled by the client)"""

    # === Secondary Models (HuggingFace Inference) ===

    hf_base_url: str = "https://api-inference.huggingface.co"
    """HuggingFace Inference API root"""

    hf_chat_models: list[str] = [
        "mistralai/Mistral-7B-Instruct-v0.3",
        "HuggingFaceH4/zephyr-7b-beta",
    ]
    """Chat models tried in order for validation"""

    hf_summarization_model: str = "facebook/bart-large-cnn"
    """Abstractive summarization model used for consensus"""

    hf_timeout: float = 60.0
    """Seconds per secondary model request (cold starts are slow)"""

    hf_max_retries: int = 2
    """Retries on model-loading or transport errors"""

    hf_default_wait: float = 15.0
    """Wait when the server reports loading without an estimate"""

    hf_max_wait: float = 30.0
    """Ceiling on any server-suggested wait"""

    hf_transport_retry_delay: float = 3.0
    """Fixed delay after a transport error"""

    # === API Keys ===

    nvidia_api_key: str | None = None
    huggingface_api_key: str | None = None

    # === Search Configuration ===

    search_url: str = "https://html.duckduckgo.com/html/"
    """HTML search endpoint"""

    search_timeout: float = 15.0
    """Seconds before a web or video search is abandoned"""

    search_max_results: int = 5
    """Results per web or video search"""

    search_max_retries: int = 2
    """Retries on transport errors, 429 and 5xx responses"""

    search_retry_delay: float = 1.0
    """First retry delay; doubles on each further retry"""

    search_max_retry_delay: float = 8.0
    """Ceiling on any retry delay"""

    video_site_hint: str = "site:youtube.com"
    """Site restriction prepended to video searches"""

    # === Query Configuration ===

    query_top_documents: int = 3
    """Documents kept by the knowledge expert"""

    query_excerpt_chars: int = 1500
    """Characters of content used when a document has no summary"""

    query_fingerprint_weight: float = 5.0
    """Weight of fingerprint cosine in knowledge scoring"""

    answer_max_tokens: int = 2048
    """Max tokens for the final answer"""

    answer_temperature: float = 0.7
    """Sampling temperature for the final answer"""

    # === Graph Configuration ===

    fingerprint_dimensions: int = 384
    """Length of the text fingerprint vector"""

    strength_increment: float = 0.5
    """Strength added when an existing entity is seen again"""

    max_strength: float = 10.0
    """Hard cap on node strength"""

    max_label_length: int = 180
    """Labels and entity names are truncated to this length"""

    min_content_length: int = 20
    """Documents shorter than this are not processed into the graph"""

    graph_max_nodes: int = 80
    """Node cap for graph visualization"""

    graph_max_links_per_node: int = 6
    """Per-node rendered link cap for graph visualization"""

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        # Copy mutable defaults so instances never share them
        self.hf_chat_models = list(type(self).hf_chat_models)

        self._load_from_env()

        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        import os

        self.nvidia_api_key = os.getenv("NVIDIA_API_KEY")
        self.huggingface_api_key = os.getenv("HUGGINGFACE_API_KEY")

        if base_url := os.getenv("CORTEX_LLM_BASE_URL"):
            self.llm_base_url = base_url
        if model := os.getenv("CORTEX_LLM_MODEL"):
            self.llm_model = model
        if model := os.getenv("CORTEX_LLM_FALLBACK_MODEL"):
            self.llm_fallback_model = model
        if timeout := os.getenv("CORTEX_SEARCH_TIMEOUT"):
            self.search_timeout = float(timeout)
        if max_nodes := os.getenv("CORTEX_GRAPH_MAX_NODES"):
            self.graph_max_nodes = int(max_nodes)
        if increment := os.getenv("CORTEX_STRENGTH_INCREMENT"):
            self.strength_increment = float(increment)

    @property
    def huggingface_configured(self) -> bool:
        """Whether the secondary models can be called."""
        return bool(self.huggingface_api_key)

    @classmethod
    def from_file(cls, path: str | Path) -> "CortexConfig":
        """
        Load configuration from TOML file.

        Nested sections are flattened with a section prefix.

        Example TOML:
            [llm]
            model = "meta/llama-3.3-70b-instruct"

            [graph]
            max_nodes = 120

            [api_keys]
            huggingface = "hf_..."

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)

        flat_config: dict[str, Any] = {}

        section_mapping = {
            "llm": "llm_",
            "huggingface": "hf_",
            "search": "search_",
            "query": "query_",
            "graph": "graph_",
            "api_keys": "",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    if section == "api_keys":
                        # api_keys.nvidia -> nvidia_api_key
                        flat_config[f"{key}_api_key"] = value
                    elif section == "graph" and hasattr(cls, key):
                        # graph-level knobs without the prefix (strength_increment, ...)
                        flat_config[key] = value
                    else:
                        flat_config[f"{prefix}{key}"] = value

        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "CortexConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are excluded.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, Any]] = {
            "llm": {
                "base_url": self.llm_base_url,
                "model": self.llm_model,
                "fallback_model": self.llm_fallback_model,
                "timeout": self.llm_timeout,
                "max_retries": self.llm_max_retries,
            },
            "huggingface": {
                "base_url": self.hf_base_url,
                "chat_models": self.hf_chat_models,
                "summarization_model": self.hf_summarization_model,
                "timeout": self.hf_timeout,
                "max_retries": self.hf_max_retries,
                "max_wait": self.hf_max_wait,
            },
            "search": {
                "url": self.search_url,
                "timeout": self.search_timeout,
                "max_results": self.search_max_results,
                "max_retries": self.search_max_retries,
                "retry_delay": self.search_retry_delay,
                "max_retry_delay": self.search_max_retry_delay,
            },
            "query": {
                "top_documents": self.query_top_documents,
                "excerpt_chars": self.query_excerpt_chars,
                "fingerprint_weight": self.query_fingerprint_weight,
            },
            "graph": {
                "max_nodes": self.graph_max_nodes,
                "max_links_per_node": self.graph_max_links_per_node,
                "strength_increment": self.strength_increment,
                "max_strength": self.max_strength,
                "min_content_length": self.min_content_length,
            },
        }

        lines = ["# cortex-kg configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                if isinstance(value, str):
                    lines.append(f'{key} = "{value}"')
                elif isinstance(value, bool):
                    lines.append(f"{key} = {str(value).lower()}")
                elif isinstance(value, (int, float)):
                    lines.append(f"{key} = {value}")
                elif isinstance(value, list):
                    items = ", ".join(f'"{item}"' for item in value)
                    lines.append(f"{key} = [{items}]")
            lines.append("")

        lines.extend([
            "# API keys should be set via environment variables:",
            "# NVIDIA_API_KEY, HUGGINGFACE_API_KEY",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "CortexConfig":
        """Return new config with specified overrides."""
        new_config = CortexConfig.__new__(CortexConfig)
        for key in dir(self):
            if key.startswith("_"):
                continue
            if isinstance(getattr(type(self), key, None), property):
                continue
            value = getattr(self, key)
            if callable(value):
                continue
            setattr(new_config, key, list(value) if isinstance(value, list) else value)
        for key, value in kwargs.items():
            setattr(new_config, key, value)
        return new_config
