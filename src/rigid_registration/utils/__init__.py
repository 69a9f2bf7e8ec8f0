"""
Utility Functions Module

This module provides common utilities used across the registration package.
- Logging setup
- Typed YAML configuration
- Input validation and error types
"""

from .logging import setup_logger, configure_logging
from .validation import PreconditionError, ConvergenceError
from .config import AppConfig, RegistrationConfig, LoggingConfig, load_config

__all__ = [
    "setup_logger",
    "configure_logging",
    "PreconditionError",
    "ConvergenceError",
    "AppConfig",
    "RegistrationConfig",
    "LoggingConfig",
    "load_config",
]
