"""Character-driven conversations over interchangeable LLM backends."""

from personaflow.framework import Framework

__all__ = ["Framework"]
