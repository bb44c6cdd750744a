"""Configuration management for cloudterm.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for deployment values like
the SSH key path.
"""

from cloudterm.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
