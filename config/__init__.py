"""Configuration module for loading and managing application settings"""
from typing import Dict, Any, Optional
from .lib.load_settings_conf import load_settings_conf, validate_settings, SettingsError, DEFAULTS
import os

__all__ = ['get_settings', 'reset_settings', 'load_settings_conf', 'validate_settings', 'SettingsError', 'DEFAULTS']

_settings: Optional[Dict[str, Any]] = None

def get_settings(settings_path: Optional[str] = None) -> Dict[str, Any]:
    """Load settings.conf once and return the cached settings.
    
    Args:
        settings_path: Optional directory containing settings.conf. Defaults to
                       $MARKET_SETTINGS_DIR or the current directory.
    
    Returns:
        Dictionary of validated settings
        
    Raises:
        SettingsError: If settings.conf is missing or invalid
    """
    global _settings
    
    if _settings is None:
        path = settings_path or os.environ.get('MARKET_SETTINGS_DIR', '.')
        try:
            _settings = load_settings_conf(path)
        except SettingsError as e:
            # Re-raise the error but provide more context
            raise SettingsError(
                f"Configuration Error\n"
                "=================\n\n"
                f"{str(e)}\n\n"
                "Please ensure settings.conf is properly configured.\n"
                "Run `python -m config --example` to write an example file."
            ) from e
    return _settings

def reset_settings() -> None:
    """Forget cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
