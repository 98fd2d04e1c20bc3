"""Environment configurations, selected by name or by FLASK_ENV."""
import os
from typing import Optional, Type

from .base import Config
from .development import DevelopmentConfig
from .production import ProductionConfig
from .testing import TestingConfig

ENVIRONMENTS = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}
DEFAULT_ENVIRONMENT = 'development'

def get_config(config_name: Optional[str] = None) -> Type[Config]:
    """Config class for an environment name; unknown names raise ValueError."""
    name = (config_name or os.getenv('FLASK_ENV') or DEFAULT_ENVIRONMENT).strip().lower()
    if name == 'default':
        name = DEFAULT_ENVIRONMENT

    try:
        return ENVIRONMENTS[name]
    except KeyError:
        raise ValueError(
            f"Unknown configuration '{config_name}'; expected one of: {', '.join(ENVIRONMENTS)}"
        ) from None
