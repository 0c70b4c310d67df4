"""
E-Commerce Analytics Marts
Configuration Module
"""
from .settings import Settings, PipelineSettings, DataQualitySettings, get_settings

__all__ = ["Settings", "PipelineSettings", "DataQualitySettings", "get_settings"]
