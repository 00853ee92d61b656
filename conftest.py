"""
Pytest configuration for ProVeloce Connect tests.
Sets up the Python path and environment defaults shared by every test.
"""

import os
import sys
from pathlib import Path

# Add the project root to Python path for all tests
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

# Set up test environment variables before app settings are imported
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-proveloce-connect")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./proveloce_test.db")
os.environ.setdefault("FRONTEND_URL", "http://localhost:5173")
os.environ.setdefault("CORS_ALLOWED_ORIGIN", "http://localhost:5173")
