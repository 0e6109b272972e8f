"""Hand-maintained list of known Gemini models, used when the live listing is unavailable."""

from __future__ import annotations

from .contracts import ModelDescriptor

FallbackCatalog = tuple[ModelDescriptor, ...]

DEFAULT_FALLBACK_CATALOG: FallbackCatalog = (
    ModelDescriptor(
        name="gemini-2.5-pro",
        display_name="Gemini 2.5 Pro",
        description="Most capable model for complex reasoning, coding, and multimodal understanding",
        version="2.5",
        input_token_limit=2_000_000,
        output_token_limit=8192,
        latency="standard",
        best_for=("Coding", "Reasoning", "Multimodal understanding"),
        knowledge_cutoff="Jan 2025",
    ),
    ModelDescriptor(
        name="gemini-2.5-flash",
        display_name="Gemini 2.5 Flash",
        description="Fast model for large scale processing with thinking capabilities",
        version="2.5",
        input_token_limit=1_000_000,
        output_token_limit=8192,
        latency="fast",
        best_for=("Large scale processing", "Low latency", "High volume tasks", "Agentic use cases"),
        knowledge_cutoff="Jan 2025",
    ),
    ModelDescriptor(
        name="gemini-2.5-flash-lite-preview-06-17",
        display_name="Gemini 2.5 Flash-Lite Preview",
        description="Lightweight, cost-effective model for high-volume processing",
        version="2.5",
        input_token_limit=1_000_000,
        output_token_limit=8192,
        latency="very_fast",
        best_for=("Large scale processing", "Low latency", "High volume tasks", "Lower cost"),
        knowledge_cutoff="Jan 2025",
    ),
    ModelDescriptor(
        name="gemini-2.0-flash-exp",
        display_name="Gemini 2.0 Flash (Experimental)",
        description="Experimental Gemini 2.0 model with improved performance",
        version="2.0",
        input_token_limit=1_000_000,
        output_token_limit=8192,
        latency="fast",
        best_for=("Experimental features", "Latest capabilities"),
        knowledge_cutoff="Jan 2025",
    ),
    ModelDescriptor(
        name="gemini-1.5-pro",
        display_name="Gemini 1.5 Pro",
        description="More capable model for complex reasoning tasks",
        version="1.5",
        input_token_limit=2_000_000,
        output_token_limit=8192,
        latency="standard",
        best_for=("Complex reasoning", "Long context"),
        knowledge_cutoff="Apr 2024",
    ),
    ModelDescriptor(
        name="gemini-1.5-flash",
        display_name="Gemini 1.5 Flash",
        description="Fast and efficient model for most tasks",
        version="1.5",
        input_token_limit=1_000_000,
        output_token_limit=8192,
        latency="fast",
        best_for=("General tasks", "Fast processing"),
        knowledge_cutoff="Apr 2024",
    ),
)
