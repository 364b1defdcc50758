"""
Relay Bot - A chat-relay bridge between a messaging account and an AI backend.

This package buffers rapid-fire messages per conversation, forwards the merged
text to Gemini or OpenAI, and relays the generated reply back to the sender
with human-like pacing.
"""

__version__ = "1.0.0"
