"""
relaybot - a chat relay between Discord and an LLM completion API, with layered memory.
"""

__version__ = "0.1.0"
__logo__ = "🛰"
