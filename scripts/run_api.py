#!/usr/bin/env python
"""
Run the pricing authority API under uvicorn.

Usage:
    python scripts/run_api.py [--reload]

Host, port, log level and data directory come from the PRICING_* environment
variables (see customer_pricing.config.settings).
"""
import os
import sys
from pathlib import Path

import uvicorn

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / 'src'))

from customer_pricing.config.settings import get_settings


def main():
    # uvicorn's reloader spawns a fresh interpreter that needs src on its path
    os.environ['PYTHONPATH'] = os.pathsep.join(
        p for p in (str(project_root / 'src'), os.environ.get('PYTHONPATH')) if p
    )
    settings = get_settings()

    print(f"Starting Customer Pricing API on http://{settings.api_host}:{settings.api_port}")
    print(f"Data directory: {settings.data_dir}")
    uvicorn.run(
        "customer_pricing.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload='--reload' in sys.argv[1:],
    )


if __name__ == "__main__":
    main()
