#!/usr/bin/env python3
"""
Run script for the Loccar Auth API.
This script launches the FastAPI server with the auth router mounted.
"""
import os
import sys
import traceback

import uvicorn

if __name__ == "__main__":
    try:
        port = int(os.getenv("PORT", 8000))
        print("Starting Loccar Auth API server...")
        print(f"Access the API at http://localhost:{port}")
        print(f"API documentation at http://localhost:{port}/docs")

        uvicorn.run(
            "rental_auth.main:app",
            host="0.0.0.0",
            port=port,
            reload=os.getenv("RELOAD", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "info").lower()
        )
    except Exception as e:
        print(f"Error starting server: {e}")
        traceback.print_exc()
        sys.exit(1)
