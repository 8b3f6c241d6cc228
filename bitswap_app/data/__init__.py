"""
Swap data models and wire message parsing.

Immutable swap terms and intents, plus the conversion between broadcast
wire payloads and those models.
"""
