"""Messenger auto-reply bot.

Receives Messenger webhook events, grounds replies in a local Markdown
knowledge base, generates answers through an OpenRouter-compatible
chat-completion API and sends them back on behalf of the configured page.
"""
