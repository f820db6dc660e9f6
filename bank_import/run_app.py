"""
Entry point for the Bank Import backend.
Launches uvicorn with the FastAPI app object directly (not as a string).
"""

import os
import sys

# Ensure the parent directory is on the path so 'bank_import' is importable
app_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if app_dir not in sys.path:
    sys.path.insert(0, app_dir)

import uvicorn
from bank_import.main import app


def main():
    port = int(os.environ.get("BANK_IMPORT_PORT", 8000))
    host = os.environ.get("BANK_IMPORT_HOST", "127.0.0.1")
    uvicorn.run(app, host=host, port=port, log_level=os.environ.get("BANK_IMPORT_LOG_LEVEL", "info"))


if __name__ == "__main__":
    main()
