"""SQLGate - confirmation-gated database access for LLM tool calls."""

__version__ = "0.1.0"
