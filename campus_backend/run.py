#!/usr/bin/env python3
"""
Quick runner for the Campus Desk Service
========================================

Usage:
    python -m campus_backend.run
"""

import uvicorn

if __name__ == "__main__":
    print("Starting Campus Desk Service...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "campus_backend.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
