"""Packaged prompt templates and their loader."""

from querygpt.prompts.loader import PROMPTS_DIR, PromptLoader

__all__ = ["PROMPTS_DIR", "PromptLoader"]
