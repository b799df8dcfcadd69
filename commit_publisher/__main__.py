#!/usr/bin/env python3
"""
Entry point for running as module: python -m commit_publisher
"""

import asyncio

from commit_publisher.app import main


def run() -> None:
    """Run the publisher until interrupted."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
