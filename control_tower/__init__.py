"""
Control Tower Backend Package.

FastAPI service that aggregates a service business's operational and marketing
feeds into one executive overview.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, collaborator HTTP client, errors and dependencies
    - models: Pydantic response schemas and enums
    - services: Range resolution, source gateway, aggregation and analytics
"""

__version__ = "1.0.0"
