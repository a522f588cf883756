import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/inventory_db")

# Application Metadata
PROJECT_NAME = "Inventory & Production Tracker"
VERSION = "1.0.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Pagination defaults for list and history endpoints
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", 10))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100)) # Upper bound for ?limit=
