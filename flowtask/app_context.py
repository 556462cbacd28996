# flowtask application context
# Rev 0.2.0

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from flowtask.repositories.db import Database
from flowtask.services.flow_data_service import FlowDataService
from flowtask.utils.config import load_settings
from flowtask.utils.logging_setup import get_logger
from flowtask.utils.paths import DB_PATH


@dataclass
class AppContext:
    """Central container for shared app resources."""
    db_path: Path
    db: Database
    store: FlowDataService
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, db_path: Optional[Path] = None, settings_path: Optional[Path] = None) -> "AppContext":
        """Open and migrate the DB, then wire the store."""
        log = get_logger("AppContext")
        path = Path(db_path) if db_path is not None else DB_PATH
        db = Database(path)
        db.run_migrations()
        store = FlowDataService.from_db(db)
        log.info("AppContext initialized with DB=%s", path)
        return cls(db_path=path, db=db, store=store, settings=load_settings(settings_path))

    def close(self) -> None:
        self.db.close()
