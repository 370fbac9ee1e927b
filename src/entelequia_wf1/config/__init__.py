"""Configurações centralizadas do entelequia_wf1.

Uso típico:
    from entelequia_wf1.config import get_settings
"""

from entelequia_wf1.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
