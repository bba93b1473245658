#!/usr/bin/env python3
"""
Script para inicializar la base de datos de Fleetline.

Uso:
    python scripts/init_db.py [--reset]

Este script:
1. Verifica la conexión a la base de datos (PostgreSQL o SQLite)
2. Borra las tablas si se pasa --reset
3. Crea las tablas si no existen

En producción el esquema se gestiona con las migraciones de Alembic en
db/migrations/versions/.
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect

from config import config
from db.database import USE_DATABASE, create_tables, drop_tables, init_engine, is_database_available


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    reset = "--reset" in argv

    print("=" * 60)
    print("Fleetline Database Initialization")
    print("=" * 60)

    if not USE_DATABASE:
        print("\nDatabase is disabled (USE_DATABASE=false)")
        print("   Set USE_DATABASE=true to enable persistence.")
        return 0

    print(f"\nDatabase URL: {config.masked_database_url(config.DATABASE_URL)}")

    print("\nInitializing database connection...")
    engine = init_engine()
    if engine is None:
        print("\nFailed to connect to database!")
        print("  Check DATABASE_URL and that the server is reachable.")
        return 1

    if reset:
        print("\nDropping existing tables...")
        drop_tables()

    print("\nCreating tables...")
    create_tables()

    if not is_database_available():
        print("Database verification failed!")
        return 1

    print("\nAvailable tables:")
    for table_name in inspect(engine).get_table_names():
        print(f"   - {table_name}")

    print("\n" + "=" * 60)
    print("Database initialization complete!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
