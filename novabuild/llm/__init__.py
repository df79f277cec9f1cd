"""
LLM module - the code-generation oracle.
"""
from .adapter import LLMAdapter, Oracle, generate_json

__all__ = ["LLMAdapter", "Oracle", "generate_json"]
