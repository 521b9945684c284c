"""Concrete schema migration steps, discovered by ``planner.migrate.MigrationEngine``."""
