"""Central configuration for the FreshMart marketplace service.

Values are read from environment variables with safe defaults for local
development. For production, set variables explicitly to avoid surprises.
"""
import os

# Database configuration
MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
DATABASE_NAME: str = os.getenv("DATABASE_NAME", "freshmart")

# Multi-document transactions need a replica set; single-node dev servers
# fall back to compensating writes.
MONGODB_TRANSACTIONS: bool = os.getenv("MONGODB_TRANSACTIONS", "false").lower() == "true"

STORE_NAME: str = os.getenv("STORE_NAME", "FreshMart")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Split origins safely into a list; empty string -> ["*"]
CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()] or ["*"]

# Attempts for the read-compute-conditional-write cycle on a trust score
TRUST_UPDATE_MAX_RETRIES: int = int(os.getenv("TRUST_UPDATE_MAX_RETRIES", "5"))

PRODUCTS_PER_PAGE: int = int(os.getenv("PRODUCTS_PER_PAGE", "12"))
