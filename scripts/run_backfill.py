# scripts/run_backfill.py

import logging
import os
import sys
from dotenv import load_dotenv

# Adjust the path to import the prospect_matcher package
# This assumes the script is run from the project root directory
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from prospect_matcher.app.main import get_matching_service

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

def main():
    """Backfills podcast matches for one stored prospect and exports them."""
    if len(sys.argv) != 2:
        print("Usage: python scripts/run_backfill.py <prospect_id>")
        return 2

    load_dotenv()
    prospect_id = sys.argv[1]
    logger.info(f"--- Starting Backfill for prospect {prospect_id} ---")
    try:
        response = get_matching_service().backfill_prospect(prospect_id)
    except Exception as e:
        logger.exception(f"An error occurred during the backfill: {e}")
        return 1

    if not response.success:
        logger.error(f"Backfill failed: {response.error}")
        return 1

    data = response.data
    logger.info(f"Backfill matched {data.total_matches} podcasts. Exported: {data.exported_to_sheet}.")
    if data.export_error:
        logger.warning(f"Export problem: {data.export_error}")
    elif data.sheet_url:
        logger.info(f"Sheet: {data.sheet_url}")
    logger.info("--- Backfill Finished ---")
    return 0

if __name__ == "__main__":
    sys.exit(main())
