#!/usr/bin/env python3
"""Launch the shble bot.

Usage:
    python run.py [config.yaml] [--debug] [--trace] [--verbose]
"""
import asyncio

from shble.main import main

if __name__ == "__main__":
    asyncio.run(main())
