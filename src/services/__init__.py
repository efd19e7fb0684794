"""
Service Layer Package

Business logic services that sit between the HTTP layer and the
gamification modules / database queries.

- GamificationService: activity processing, calculator rewards
"""

from src.services.container import ServiceContainer, get_container, init_container

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
]
