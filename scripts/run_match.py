# scripts/run_match.py

import argparse
import json
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
    """Runs one ad-hoc podcast match and prints the response envelope as JSON."""
    parser = argparse.ArgumentParser(description="Match a prospect to podcasts.")
    parser.add_argument("name", help="Prospect full name")
    parser.add_argument("--bio", default=None, help="Prospect bio/background")
    parser.add_argument("--threshold", type=float, default=0.2, help="Similarity threshold (0-1)")
    parser.add_argument("--count", type=int, default=50, help="Number of matches wanted (1-100)")
    parser.add_argument("--no-ai-filter", action="store_true", help="Skip the LLM relevance filter")
    args = parser.parse_args()

    load_dotenv()
    logger.info("--- Starting Podcast Match Script ---")
    service = get_matching_service()
    response = service.match_podcasts({
        "name": args.name,
        "bio": args.bio,
        "similarity_threshold": args.threshold,
        "requested_count": args.count,
        "use_relevance_filter": not args.no_ai_filter,
    })
    print(json.dumps(response.model_dump(mode="json"), indent=2))
    logger.info("--- Podcast Match Script Finished ---")
    return 0 if response.success else 1

if __name__ == "__main__":
    sys.exit(main())
