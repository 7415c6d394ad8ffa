"""
Domain layer for email forwarding business logic.

This layer contains:
- Address configuration and recipient remapping
- Data models (type-safe structures)
- Forwarding pipeline (explicit success/failure results)
"""
