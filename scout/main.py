"""
Entry point for Opportunity Scout.

Meant to be run on a schedule (cron, launchd, a CI schedule):

    scout              # installed console script
    python -m scout.main

SETUP REQUIRED:
1. Copy config.yaml.example to config.yaml and adjust sources and recipients
2. Copy .env.example to .env and fill in SMTP and LLM credentials
3. Install dependencies:
   pip install -e .
"""

import asyncio
import sys

from .pipeline import run_pipeline


def main():
    """Run one pipeline pass and exit with its status."""
    try:
        success = asyncio.run(run_pipeline())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
