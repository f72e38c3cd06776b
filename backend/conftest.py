# Point settings at an in-memory database before anything imports mentorship.database.
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CI", "1")
