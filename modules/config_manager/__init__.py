"""
Configuration Manager Module
============================

Responsibility:
- Centralized loading and validation of JSON configuration files.
- Enforcement of schema constraints and logical rules on parameter domains.
- Thread oversubscription warnings (configurations x folds vs. CPU count).
- Deterministic seed propagation for reproducibility.
- Conversion of the validated configuration into SearchSettings.
"""

from .config_manager import ConfigurationManager

__all__ = ['ConfigurationManager']
