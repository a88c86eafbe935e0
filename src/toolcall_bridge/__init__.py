"""
toolcall-bridge

OpenAI-compatible chat completions with function calling emulated on top of a
text-only chat backend.
"""

__version__ = "0.1.0"
