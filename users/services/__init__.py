"""Integrations with the account store, the cache, and the message bus."""
