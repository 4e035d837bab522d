"""
Hold Sweep Background Worker Runner
Run this as a separate process: python run_sweep_worker.py
"""

import asyncio
import logging
import sys

from app.workers.sweep_worker import run_sweep_worker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Starting Hold Sweep Background Worker...")
    try:
        asyncio.run(run_sweep_worker())
    except KeyboardInterrupt:
        logger.info("👋 Sweep worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Sweep worker crashed: {e}")
        sys.exit(1)
