"""
HTTP surface.

Modules:
- chat_api: /api/chat and /api/chat/stream
- places: /api/places/search and the Places client
- enrichment: Places-backed plan de-duplication and photo lookups
- prompts: prompt templates and the strict plan schema
- sse: event-stream frame encoding
- config: environment-backed server configuration
"""
