#!/usr/bin/env python3
"""
CastleMock Lite - mock REST APIs from OpenAPI documents

This is a convenience wrapper that calls the packaged implementation.
The actual implementation is in src/castlemock_lite/cli.py

Usage:
    python castlemock-lite.py import petstore.yaml
    python castlemock-lite.py send <project-id> GET /pets
"""

import sys
from pathlib import Path

# Add the package source to the path
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))

# Import and run the packaged main function
from castlemock_lite.cli import main

if __name__ == '__main__':
    main()
