"""Agent-side context assembly."""

from research_memory.agent.context import MemoryContext, PromptContext, format_memories

__all__ = ["MemoryContext", "PromptContext", "format_memories"]
