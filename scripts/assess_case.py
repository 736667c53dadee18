import argparse
import json
import logging
from datetime import date
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "backend"))

from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.core.config import build_data_paths, get_settings
from clearpath.services.eligibility import EligibilityEngine


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Assess record relief eligibility for a case file.")
    parser.add_argument("case", help="Path to a JSON file holding the user case.")
    parser.add_argument("--factors", help="Path to a JSON file holding additional factors.")
    parser.add_argument("--as-of", type=date.fromisoformat, help="Assess as of this date (YYYY-MM-DD).")
    return parser.parse_args()


def load_json(path: str) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args()
    settings = get_settings()
    data_paths = build_data_paths(settings.data_base_path)

    jurisdictions = JurisdictionRegistry.load(data_paths.jurisdictions)
    today = (lambda: args.as_of) if args.as_of else date.today
    engine = EligibilityEngine(jurisdictions, today=today)

    factors = load_json(args.factors) if args.factors else None
    result = engine.assess(load_json(args.case), factors)
    print(result.model_dump_json(by_alias=True, indent=2))


if __name__ == "__main__":
    main()
