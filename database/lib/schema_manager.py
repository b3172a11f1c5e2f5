"""Database schema management module.

This module handles database schema versioning and migrations. Each version
lives in ``database/schema/vN.py`` as a ``schema`` dict describing tables,
indexes and, for upgrades, raw migration statements.
"""
import importlib
import logging
from pathlib import Path
from typing import Dict, Any, List

from ..exceptions import DatabaseSchemaError

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent.parent / 'schema'

def create_table_sql(table: Dict[str, Any]) -> str:
    """Build the CREATE TABLE statement for a table definition.
    
    Args:
        table: Table definition dictionary
        
    Returns:
        SQL statement creating the table without indexes
    """
    columns = []
    constraints = []
    
    for col in table['columns']:
        col_def = f"{col['name']} {col['type']}"
        
        if col.get('primary_key'):
            constraints.append(f"PRIMARY KEY ({col['name']})")
        elif col.get('unique'):
            constraints.append(f"UNIQUE ({col['name']})")
            
        if 'default' in col:
            col_def += f" DEFAULT {col['default']}"
            
        if col.get('nullable') is False:
            col_def += " NOT NULL"
            
        columns.append(col_def)
        
    # Add composite primary key if specified
    if isinstance(table.get('primary_key'), list):
        constraints.append(f"PRIMARY KEY ({', '.join(table['primary_key'])})")
    
    return f"CREATE TABLE IF NOT EXISTS {table['name']} ({', '.join(columns + constraints)})"

def create_index_sql(table_name: str, index: Dict[str, Any]) -> str:
    """Build the CREATE INDEX statement for an index definition."""
    unique = 'UNIQUE ' if index.get('unique') else ''
    where = f" WHERE {index['where']}" if 'where' in index else ''
    return (
        f"CREATE {unique}INDEX IF NOT EXISTS {index['name']} "
        f"ON {table_name}({', '.join(index['columns'])}){where}"
    )

class SchemaManager:
    """Manages database schema versioning and migrations."""
    
    def __init__(self, pool, schema_dir: Path = SCHEMA_DIR) -> None:
        """Initialize schema manager.
        
        Args:
            pool: Database connection pool
            schema_dir: Directory containing schema version files
        """
        self.pool = pool
        self._schema_dir = Path(schema_dir)
        self.current_version = 0
        self._schema_files: Dict[int, Dict[str, Any]] = {}
    
    async def initialize(self) -> None:
        """Initialize schema management.
        
        Creates schema version table if it doesn't exist and runs any pending migrations.
        
        Raises:
            DatabaseSchemaError: If schema initialization fails or no valid schema files are found
        """
        try:
            async with self.pool.acquire() as conn:
                await conn.execute('''
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INT8 PRIMARY KEY,
                        applied_at TIMESTAMP NOT NULL DEFAULT now()
                    )
                ''')
                
                row = await conn.fetchrow(
                    'SELECT version FROM schema_version ORDER BY version DESC LIMIT 1'
                )
                self.current_version = row['version'] if row else 0
                
            schema_files = self.load_schema_files()
            if not schema_files:
                raise DatabaseSchemaError("No valid schema files found in schema directory")
                
            await self._apply_migrations(schema_files)
                
        except DatabaseSchemaError:
            raise
        except Exception as e:
            logger.error(f"Schema initialization failed: {e}")
            raise DatabaseSchemaError(f"Failed to initialize schema: {e}")
    
    def load_schema_files(self) -> Dict[int, Dict[str, Any]]:
        """Load all schema version files.
        
        Returns:
            Dict mapping version numbers to schema definitions, sorted by version
            
        Raises:
            DatabaseSchemaError: If a schema file is malformed
        """
        schema_files = {}
        
        if not self._schema_dir.exists():
            return schema_files
            
        for file in self._schema_dir.glob('v*.py'):
            try:
                version = int(file.stem[1:])  # Extract number from vX.py
            except ValueError:
                logger.warning(f"Invalid schema filename: {file}")
                continue
                
            module = importlib.import_module(f"database.schema.{file.stem}")
            if not hasattr(module, 'schema'):
                raise DatabaseSchemaError(f"Schema file {file} missing 'schema' definition")
                
            schema = module.schema
            if schema['version'] != version:
                raise DatabaseSchemaError(
                    f"Schema version mismatch in {file}: "
                    f"Expected v{version}, got v{schema['version']}"
                )
            schema_files[version] = schema
                
        self._schema_files = dict(sorted(schema_files.items()))
        return self._schema_files
    
    async def _apply_migrations(self, schema_files: Dict[int, Dict[str, Any]]) -> None:
        """Apply any pending schema migrations.
        
        Args:
            schema_files: Dict mapping version numbers to schema definitions
        """
        latest_version = max(schema_files.keys())
        if self.current_version >= latest_version:
            logger.info("Schema is up to date")
            return
            
        logger.info(
            f"Updating schema from version {self.current_version} to {latest_version}"
        )
        
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                if self.current_version == 0:
                    # Fresh install: create the latest schema directly
                    for statement in self.fresh_schema_statements(schema_files[latest_version]):
                        await conn.execute(statement)
                    await conn.execute(
                        'INSERT INTO schema_version (version) VALUES ($1)',
                        latest_version
                    )
                else:
                    for version in range(self.current_version + 1, latest_version + 1):
                        if version not in schema_files:
                            continue
                        for migration in schema_files[version].get('migrations', []):
                            await conn.execute(migration)
                        await conn.execute(
                            'INSERT INTO schema_version (version) VALUES ($1)',
                            version
                        )
                        logger.info(f"Successfully migrated to version {version}")
        
        self.current_version = latest_version
        logger.info(f"Schema at version {latest_version}")
    
    @staticmethod
    def fresh_schema_statements(schema: Dict[str, Any]) -> List[str]:
        """SQL statements creating every table and index of a schema."""
        statements = [create_table_sql(table) for table in schema.get('tables', [])]
        for table in schema.get('tables', []):
            statements.extend(
                create_index_sql(table['name'], index)
                for index in table.get('indexes', [])
            )
        return statements
