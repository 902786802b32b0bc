from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd
from sklearn.datasets import load_wine

from wine_clustering.records import WINE_COLUMNS


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Write the UCI wine dataset bundled with scikit-learn to CSV.")
    parser.add_argument(
        "--output",
        default="data/raw/wine-clustering.csv",
        help="Output CSV path expected by the pipeline config.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Same 13 measurements in the same order as the clustering CSV; the class label is dropped.
    bunch = load_wine(as_frame=True)
    df = pd.DataFrame(bunch.data.to_numpy(), columns=WINE_COLUMNS)

    df.to_csv(output_path, index=False)
    print(f"Saved: {output_path} | shape={df.shape}")


if __name__ == "__main__":
    main()
