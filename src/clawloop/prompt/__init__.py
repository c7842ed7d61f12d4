"""Prompt assembly."""

from clawloop.prompt.builder import PromptBuilder, PromptMode

__all__ = ["PromptBuilder", "PromptMode"]
