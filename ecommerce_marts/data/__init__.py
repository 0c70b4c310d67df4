"""
Seed Data Module
"""
from .generators import RawDataGenerator

__all__ = [
    "RawDataGenerator",
]
