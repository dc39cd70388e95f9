"""
API Layer

FastAPI presentation layer: app factory, routers, dependency providers and
shared HTTP schemas. No business logic lives here.
"""
