"""Remittance Compliance Engine - API Routers"""
from .scheduler import router as scheduler_router

__all__ = [
    "scheduler_router",
]
