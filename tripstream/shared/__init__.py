"""
Shared infrastructure.

Modules:
- llm: OpenAI client with retry logic
- logging: Structured JSON logging
- contracts: Wire models for plan documents and chat requests
"""
