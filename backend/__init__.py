"""Backend package initialization.

Single source of truth for package version and backend identifiers so that
code, tests, and scripts can import without duplicating literals.
"""

PACKAGE_VERSION = "0.1.0"  # Keep in sync with pyproject version.
DEFAULT_SERVER_NAME = "mcp-server-db"

MYSQL = "mysql"
POSTGRES = "postgres"
BACKEND_KINDS = (MYSQL, POSTGRES)

__all__ = ["PACKAGE_VERSION", "DEFAULT_SERVER_NAME", "MYSQL", "POSTGRES", "BACKEND_KINDS"]
