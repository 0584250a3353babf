"""
Database entry point: ensures the schema exists for a given SQLite path.
"""

import logging

from infrastructure.schema_manager import SchemaManager

logger = logging.getLogger("stakes_bot.database")


class Database:
    """
    Thin facade over SchemaManager.

    Constructing a Database initializes (or migrates) the schema at db_path.
    Data access goes through the repositories, not through this class.
    """

    def __init__(self, db_path: str = "stakes_bot.db"):
        self.db_path = db_path
        self.use_uri = db_path.startswith("file:")
        self.schema_manager = SchemaManager(db_path, use_uri=self.use_uri)
        self.schema_manager.initialize()
