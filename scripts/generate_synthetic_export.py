"""Write a synthetic raw audit export for demos and scale checks.

Usage:
    python scripts/generate_synthetic_export.py --n-patients 200 --output data/raw/synthetic_export.csv
"""

import argparse
import logging

from sarclean.synthetic import generate_audit_export, write_audit_export

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    """Generate and write the export."""
    parser = argparse.ArgumentParser(description="Generate a synthetic audit export")
    parser.add_argument("--n-patients", type=int, default=200)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--missing-rate", type=float, default=0.1)
    parser.add_argument("--output", type=str, default="data/raw/synthetic_export.csv")
    args = parser.parse_args()

    df = generate_audit_export(
        n_patients=args.n_patients,
        seed=args.seed,
        missing_rate=args.missing_rate,
    )
    path = write_audit_export(df, args.output)
    logger.info(f"Synthetic export saved to: {path}")


if __name__ == "__main__":
    main()
