"""Configuration for the personal budget app.

Values come from the environment (a local ``.env`` file is honoured) with
defaults that work out of the box against a SQLite file at the project root.
"""

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Storage backend: 'sqlite' (default) or 'mongo'
STORAGE_BACKEND = os.getenv("BUDGET_STORAGE", "sqlite").strip().lower()
DB_PATH = os.getenv("BUDGET_DB_PATH", os.path.join(ROOT_DIR, "personal_budget.db"))
MONGO_URL = os.getenv("BUDGET_MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("BUDGET_MONGO_DB", "personal_budget")

# Fixed document address
COLLECTION = "budgetData"
DOCUMENT_ID = "main"

DEFAULT_BUDGET = Decimal(os.getenv("BUDGET_DEFAULT_AMOUNT", "2000"))

SAVE_TIMEOUT = float(os.getenv("BUDGET_SAVE_TIMEOUT", "10"))
SAVE_ATTEMPTS = int(os.getenv("BUDGET_SAVE_ATTEMPTS", "3"))
SAVE_RETRY_DELAY = float(os.getenv("BUDGET_SAVE_RETRY_DELAY", "0.5"))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
