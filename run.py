#!/usr/bin/env python3
"""
Startup script for the Business Registry API.
This script checks the environment and starts the FastAPI server.
"""

import os
import sys

from dotenv import load_dotenv


def check_environment():
    """Check if the environment is properly configured."""
    load_dotenv()

    if not (os.getenv("DATABASE_URL") or os.getenv("DATABASE_POOLING_URL")):
        print("⚠️  DATABASE_URL is not set; the API will serve empty results")
        print("\nTo connect a database:")
        print("1. Copy env.example to .env")
        print("2. Edit .env and set DATABASE_URL")
        print("3. Run this script again")
        return False

    print("✅ Environment is properly configured")
    return True


def main():
    """Main function to start the API server."""
    print("🚀 Starting Business Registry API Server")
    print("=" * 40)

    # A missing database is not fatal; endpoints degrade to empty results
    check_environment()

    try:
        import uvicorn

        from app import app

        port = int(os.getenv("PORT", "8000"))
        print("✅ All dependencies loaded successfully")
        print(f"🌐 Starting server at http://localhost:{port}")
        print(f"📚 API documentation: http://localhost:{port}/docs")
        print("🛑 Press Ctrl+C to stop the server")
        print("=" * 40)

        uvicorn.run(app, host="0.0.0.0", port=port)

    except ImportError as e:
        print(f"❌ Failed to import dependencies: {e}")
        print("\nPlease install dependencies:")
        print("pip install -e .")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Failed to start server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
