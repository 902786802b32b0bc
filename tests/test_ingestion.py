"""Tests for wine_clustering.ingestion."""

from __future__ import annotations

import types
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from wine_clustering import ingestion
from wine_clustering.errors import LoadError
from wine_clustering.ingestion import iter_records, load_wine_csv
from wine_clustering.records import WINE_COLUMNS, WineRecord

HEADER = ",".join(WINE_COLUMNS)
ROWS = [
    "14.23,1.71,2.43,15.6,127,2.8,3.06,.28,2.29,5.64,1.04,3.92,1065",
    "13.2,1.78,2.14,11.2,100,2.65,2.76,.26,1.28,4.38,1.05,3.4,1050",
    "13.16,2.36,2.67,18.6,101,2.8,3.24,.3,2.81,5.68,1.03,3.17,1185",
]


def _write(tmp_path: Path, lines: list[str], name: str = "wine.csv") -> Path:
    path = tmp_path / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class TestLoadWineCsv:
    def test_loads_every_row(self, tmp_path: Path) -> None:
        df = load_wine_csv(_write(tmp_path, [HEADER, *ROWS]))
        assert df.shape == (3, 13)
        assert list(df.columns) == WINE_COLUMNS
        assert (df.dtypes == np.float32).all()

    def test_values_match_source_text(self, tmp_path: Path) -> None:
        df = load_wine_csv(_write(tmp_path, [HEADER, *ROWS]))
        expected = np.array([[np.float32(v) for v in row.split(",")] for row in ROWS], dtype=np.float32)
        np.testing.assert_array_equal(df.to_numpy(), expected)

    def test_columns_map_by_position_not_header(self, tmp_path: Path) -> None:
        header = ",".join(f"col{i}" for i in range(13))
        df = load_wine_csv(_write(tmp_path, [header, ROWS[0]]))
        assert df.loc[0, "Alcohol"] == np.float32(14.23)
        assert df.loc[0, "Proline"] == np.float32(1065)

    def test_headerless_file(self, tmp_path: Path) -> None:
        df = load_wine_csv(_write(tmp_path, ROWS), has_header=False)
        assert len(df) == 3

    def test_write_then_reload_is_stable(self, tmp_path: Path) -> None:
        first = load_wine_csv(_write(tmp_path, [HEADER, *ROWS]))
        again_path = tmp_path / "again.csv"
        first.to_csv(again_path, index=False)
        second = load_wine_csv(again_path)
        pd.testing.assert_frame_equal(first, second)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(LoadError, match="not found"):
            load_wine_csv(tmp_path / "nope.csv")

    def test_non_numeric_field_raises(self, tmp_path: Path) -> None:
        bad = ROWS[1].replace("100", "lots")
        with pytest.raises(LoadError, match="Magnesium"):
            load_wine_csv(_write(tmp_path, [HEADER, ROWS[0], bad]))

    def test_wrong_separator_raises(self, tmp_path: Path) -> None:
        lines = [line.replace(",", ";") for line in [HEADER, *ROWS]]
        with pytest.raises(LoadError, match="separator"):
            load_wine_csv(_write(tmp_path, lines))

    def test_header_only_raises(self, tmp_path: Path) -> None:
        with pytest.raises(LoadError, match="No data rows"):
            load_wine_csv(_write(tmp_path, [HEADER]))

    def test_missing_value_raises(self, tmp_path: Path) -> None:
        with pytest.raises(LoadError, match="Missing values"):
            load_wine_csv(_write(tmp_path, [HEADER, ROWS[0].replace("2.43", "")]))


class TestIterRecords:
    def test_is_lazy_and_yields_records(self, tmp_path: Path) -> None:
        df = load_wine_csv(_write(tmp_path, [HEADER, *ROWS]))
        records = iter_records(df)
        assert isinstance(records, types.GeneratorType)
        first = next(records)
        assert isinstance(first, WineRecord)
        assert first.Proline == pytest.approx(1065.0)
        assert len(list(records)) == 2


class TestRun:
    def test_stores_frame_in_context(self, config, wine_df) -> None:
        context: dict = {}
        result = ingestion.run(config=config, context=context)
        assert result["status"] == "ok"
        assert result["rows"] == len(wine_df)
        assert context["wine_df"].shape == (len(wine_df), 13)

    def test_missing_file_is_a_load_error(self, config, tmp_path: Path) -> None:
        config["paths"]["data"] = str(tmp_path / "missing.csv")
        with pytest.raises(LoadError):
            ingestion.run(config=config, context={})
