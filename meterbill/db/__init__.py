"""Database models, async session management and Alembic migrations."""
