"""LLM-backed category suggestions for single transactions."""

from llm.factory import get_llm_provider

__all__ = ["get_llm_provider"]
