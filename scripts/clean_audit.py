"""Clean a raw audit export and write the analysis-ready outputs.

Usage:
    python scripts/clean_audit.py --input data/raw/audit_report.csv --output-dir data/cleaned
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from sarclean.data.loaders import AuditExportLoader
from sarclean.data.store import write_outputs
from sarclean.pipeline import CleaningConfig, CleaningPipeline

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    """Run the cleaning pipeline from the command line."""
    parser = argparse.ArgumentParser(description="Clean a sarcopenia study audit export")
    parser.add_argument("--input", type=str, required=True,
                        help="Raw export CSV")
    parser.add_argument("--output-dir", type=str, default="data/cleaned",
                        help="Directory for cleaned tables and reports")
    parser.add_argument("--rules", type=str, default=None,
                        help="Column rule table YAML (default: packaged rules)")
    parser.add_argument("--config", type=str, default=None,
                        help="Pipeline configuration YAML")
    parser.add_argument("--verbose", action="store_true",
                        help="Log at DEBUG level")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    start_time = time.time()
    try:
        config = CleaningConfig.from_yaml(args.config) if args.config else CleaningConfig()
        raw = AuditExportLoader(args.input, max_size_mb=config.max_input_mb).load()
        pipeline = CleaningPipeline(config=config, rules=args.rules)
        result = pipeline.run(raw)
    except (FileNotFoundError, ValueError) as e:
        # InvalidInputError and RuleTableError are ValueErrors
        print(f"Error: {e}", file=sys.stderr)
        return 1

    paths = write_outputs(result, Path(args.output_dir))
    elapsed = time.time() - start_time

    summary = result.summary
    logger.info("=" * 60)
    logger.info(f"Patients: {summary.n_patients}, observations: {summary.n_observations}")
    logger.info(f"Visits per patient: {summary.visits_per_patient}")
    logger.info(
        f"Variables: {summary.n_variables_total} total, "
        f"{summary.n_variables_visits} visits, {summary.n_variables_ae} adverse events"
    )
    logger.info(f"Quality: {len(result.quality.issues)} findings, {len(result.quality.warnings)} warnings")
    logger.info(f"Outputs written to: {Path(args.output_dir)} ({len(paths)} files)")
    logger.info(
        f"Processed {summary.n_observations} visit records in {elapsed:.2f}s "
        f"({summary.n_observations / max(elapsed, 1e-9):.1f} records/second)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
