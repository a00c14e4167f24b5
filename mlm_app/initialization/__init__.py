"""
Application bootstrap: logging and database wiring.
"""

from mlm_app.initialization.database import (
    create_engine,
    create_session_maker,
    init_models,
)
from mlm_app.initialization.logging import setup_logging

__all__ = [
    "create_engine",
    "create_session_maker",
    "init_models",
    "setup_logging",
]
