"""typesplit - Type Directory Migration.

Move configuration types between repositories without losing their history.
"""

__version__ = "0.1.0"

from typesplit.engine import EngineError, MigrationEngine, create_engine
from typesplit.models import MigrationMode, MigrationRequest, MigrationResult

__all__ = [
    "__version__",
    "EngineError",
    "MigrationEngine",
    "create_engine",
    "MigrationMode",
    "MigrationRequest",
    "MigrationResult",
]
