#!/usr/bin/env python3
"""
Generate LLM differential diagnoses for study vignettes.

Without --vignette-id, every vignette that has no output yet is processed in
order; failures are reported per vignette and the batch continues.

Usage:
    python scripts/generate_diagnoses.py [--vignette-id 3] [--force] [--model openai/gpt-4o] [--api-key KEY]
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path to import ddx_survey modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from ddx_survey.config import settings
from ddx_survey.database import get_db
from ddx_survey.db_init import init_database
from ddx_survey.exceptions import StudyError
from ddx_survey.services import generation


def main():
    parser = argparse.ArgumentParser(description="Generate differential diagnoses for vignettes")
    parser.add_argument("--vignette-id", type=int, help="Only generate for this vignette")
    parser.add_argument("--force", action="store_true", help="Regenerate even if an output exists")
    parser.add_argument("--model", default=None, help=f"Model name (default: {settings.llm_model})")
    parser.add_argument("--api-key", default=None, help="API key (default: from environment)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print(f"📁 Database: {settings.database_path}")
    print(f"🤖 Provider: {settings.llm_provider}, model: {args.model or settings.llm_model}")
    init_database()

    try:
        with get_db() as conn:
            if args.vignette_id is not None:
                generate = generation.regenerate_diagnoses if args.force else generation.generate_diagnoses
                output = generate(conn, args.vignette_id, api_key=args.api_key, model_name=args.model)
                print(f"\n✅ Vignette {args.vignette_id}: output {output.id} with {len(output.diagnoses)} diagnoses")
                for dx in output.diagnoses:
                    print(f"   {dx.likelihoodRank}. {dx.diagnosis} ({dx.icd10Code})")
                return

            if args.force:
                print("⚠️  --force only applies together with --vignette-id")

            summary = generation.generate_all_diagnoses(conn, api_key=args.api_key, model_name=args.model)

        print(f"\n📊 Batch summary:")
        print(f"   Vignettes: {summary.total}")
        print(f"   Generated: {summary.generated}")
        print(f"   Skipped (already had output): {summary.skipped}")
        print(f"   Failed: {summary.failed}")
        for result in summary.results:
            if result.status == "failed":
                print(f"   ✗ Vignette {result.vignette_id}: {result.error}")

        if summary.failed:
            sys.exit(1)

    except StudyError as e:
        print(f"\n❌ Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
