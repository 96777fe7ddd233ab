import pandas as pd
import pytest

from analytics.aggregation import calculate_system_az
from analytics.histogram import create_histogram_bins
from analytics.quality import filter_systems_by_realistic_cop
from scripts.analysis.summarize_efficiency import main, summarize


def test_monthly_totals_to_histogram_end_to_end(monthly_rows):
    systems = filter_systems_by_realistic_cop(calculate_system_az(monthly_rows))
    result = create_histogram_bins(systems, "az", 0.5)

    assert sum(b.count for b in result.bins) == len(systems) == 2
    assert "sys-c" not in [i for b in result.bins for i in b.system_ids]


def test_summarize_frames(monthly_rows):
    systems_df, bins_df = summarize(monthly_rows)

    assert list(systems_df["heating_id"]) == ["sys-a", "sys-b"]
    assert systems_df["az"].tolist() == pytest.approx([3.5, 2.8])
    assert bins_df["count"].sum() == 2
    assert list(bins_df["label"]) == ["2.5-3.0", "3.5-4.0"]


def test_summarize_energy_field(monthly_rows):
    _, bins_df = summarize(monthly_rows, field="energy", bin_size=100)
    assert list(bins_df["label"]) == ["1200-1300"]
    assert bins_df.loc[0, "system_ids"] == "sys-a;sys-b"


def test_main_writes_csv_outputs(tmp_path, capsys):
    csv_path = tmp_path / "export.csv"
    lines = ["heating_id,month,thermal_energy_kwh,electrical_energy_kwh"]
    for month in range(1, 13):
        lines.append(f"sys-a,{month},300,100")
        lines.append(f"sys-b,{month},420,100")
    csv_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    output_dir = tmp_path / "out"

    exit_code = main(["--input", str(csv_path), "--output-dir", str(output_dir), "--bin-size", "1"])

    assert exit_code == 0
    systems = pd.read_csv(output_dir / "systems.csv")
    histogram = pd.read_csv(output_dir / "histogram.csv")
    assert systems["az"].tolist() == pytest.approx([3.0, 4.2])
    assert histogram["label"].tolist() == ["3.0-4.0", "4.0-5.0"]
    assert "Results saved to" in capsys.readouterr().out


def test_main_reports_parse_errors(tmp_path, capsys):
    csv_path = tmp_path / "broken.csv"
    csv_path.write_text("heating_id,electrical_energy_kwh\nsys-a,lots\n", encoding="utf-8")

    assert main(["--input", str(csv_path), "--output-dir", str(tmp_path / "out")]) == 1
    assert "Could not parse" in capsys.readouterr().err


def test_main_unknown_field(tmp_path):
    csv_path = tmp_path / "export.csv"
    csv_path.write_text("heating_id,thermal_energy_kwh,electrical_energy_kwh\nsys-a,3,1\n",
                        encoding="utf-8")
    assert main(["--input", str(csv_path), "--field", "scop",
                 "--output-dir", str(tmp_path / "out")]) == 2
