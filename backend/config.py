import os
from dotenv import load_dotenv

load_dotenv()

# --- Database ---
# Local embedded SQLite file; override with DATABASE_URL (e.g. "sqlite://" for in-memory)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/todomore.db")

# Schema version the code expects; migrations run up to this value
SCHEMA_VERSION = 2

SQL_ECHO = os.getenv("SQL_ECHO", "").lower() in ("1", "true", "yes")

# --- Goals ---
# Upper bound when walking parent_goal_id chains (cascade delete, reparenting)
MAX_GOAL_DEPTH = int(os.getenv("MAX_GOAL_DEPTH", "64"))

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
