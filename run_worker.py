"""
Notification Background Worker Runner
Run this as a separate process: python run_worker.py
"""

import logging
import sys
from pathlib import Path

from arq import run_worker

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from carebook.worker import WorkerSettings  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Starting notification worker...")
    try:
        run_worker(WorkerSettings)
    except KeyboardInterrupt:
        logger.info("👋 Notification worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Notification worker crashed: {e}")
        sys.exit(1)
