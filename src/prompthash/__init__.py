"""PromptHash — a single-asset marketplace for tokenised prompts."""

__version__ = "0.1.0"
