"""
Tests for the Excel export and the command line entry point.
"""

import asyncio
import io

import pandas as pd
import pytest
from openpyxl import load_workbook

from insights.export import (
    SHEET_NAME,
    export_filename,
    predictions_excel_bytes,
    predictions_sheet,
    write_predictions_excel,
)
from insights.models import CustomSegment, Prediction, SegmentFilter
from insights.run import format_segment, main
from insights.store import ProfileRepository, create_all, open_engine


@pytest.fixture
def churn_rows():
    return [
        Prediction("churn_prediction", "H1", "P1", customer_name="Ayşe Yılmaz",
                   current_product="Kasko", probability=70, reason="2 policies cancelled",
                   city="İZMİR"),
        Prediction("churn_prediction", "H2", "P2", customer_name="Mehmet",
                   current_product="Trafik", probability=40, reason="1 policy cancelled"),
    ]


class TestSheet:

    def test_churn_layout(self, churn_rows):
        df = predictions_sheet(churn_rows, "churn_prediction")

        assert list(df.columns) == [
            "Müşteri Adı", "Mevcut Ürün", "İptal Olasılığı (%)",
            "Potansiyel İptal Sebebi", "Şehir",
        ]
        assert list(df["İptal Olasılığı (%)"]) == [70, 40]

    def test_sales_layout(self):
        row = Prediction("cross_sell", "H1", "P1", current_product="Trafik",
                         suggested_product="Kasko", probability=75)
        df = predictions_sheet([row], "cross_sell")

        assert "Önerilen Ürün" in df.columns
        assert df["Önerilen Ürün"].iloc[0] == "Kasko"
        assert df["Satış Olasılığı (%)"].iloc[0] == 75

    def test_empty(self):
        df = predictions_sheet([], "products")
        assert df.empty
        assert len(df.columns) == 6


class TestWorkbook:

    def test_header_styled(self, churn_rows, tmp_path):
        path = write_predictions_excel(churn_rows, tmp_path / "churn.xlsx", "churn_prediction")
        sheet = load_workbook(path)[SHEET_NAME]

        headers = [cell.value for cell in sheet[1]]
        assert headers[0] == "Müşteri Adı"
        assert all(cell.font.bold for cell in sheet[1])
        assert sheet["A2"].value == "Ayşe Yılmaz"
        assert sheet["E2"].value == "İZMİR"
        assert sheet.column_dimensions["D"].width == 50

    def test_bytes(self, churn_rows):
        data = predictions_excel_bytes(churn_rows, "churn_prediction")
        df = pd.read_excel(io.BytesIO(data), sheet_name=SHEET_NAME)
        assert list(df["Mevcut Ürün"]) == ["Kasko", "Trafik"]

    def test_filename(self):
        name = export_filename("cross_sell", pd.Timestamp("2024-05-01 13:45:10"))
        assert name.name == "tahminler_cross_sell_20240501_134510.xlsx"
        assert export_filename(None, pd.Timestamp("2024-05-01")).name.startswith("tahminler_all_")


class TestCommandLine:

    @pytest.fixture
    def cli_env(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("INSIGHTS_OPENAI_API_KEY", raising=False)
        url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
        monkeypatch.setenv("INSIGHTS_DATABASE_URL", url)
        monkeypatch.setenv("INSIGHTS_RUNS_DIR", str(tmp_path / "runs"))
        return url

    def seed(self, url, profiles):
        async def run():
            engine = open_engine(url)
            await create_all(engine)
            await ProfileRepository(engine).add_profiles(profiles)
            await engine.dispose()
        asyncio.run(run())

    def test_list_without_runs(self, cli_env, capsys):
        assert main(["--list"]) == 0
        assert "No runs found." in capsys.readouterr().out

    def test_no_arguments(self, cli_env):
        assert main([]) == 1

    def test_empty_database_reports_error(self, cli_env, capsys):
        assert main(["cross_sell"]) == 1
        assert "ERROR" in capsys.readouterr().out

    def test_llm_type_without_key(self, cli_env, capsys, edge_profiles):
        self.seed(cli_env, edge_profiles)
        assert main(["segmentation"]) == 1
        assert "no API key" in capsys.readouterr().out

    def test_format_segment(self):
        segment = CustomSegment(
            "ankara", "Ankara", "Customers in Ankara", 80,
            SegmentFilter(city="ANKARA"), ["H1", "H2", "H3"],
        )
        text = format_segment(segment, limit=2)

        assert text.startswith("Ankara (confidence 80%)")
        assert "{'city': 'ANKARA'}" in text
        assert "    H2" in text
        assert "... 1 more" in text

    def test_segment_without_key(self, cli_env, capsys, edge_profiles):
        self.seed(cli_env, edge_profiles)
        assert main(["--segment", "Kasko owners without Trafik"]) == 1
        assert "no API key" in capsys.readouterr().out

    def test_run_and_export(self, cli_env, tmp_path, edge_profiles, capsys):
        self.seed(cli_env, edge_profiles)

        assert main(["cross_sell"]) == 0
        assert main(["--export", str(tmp_path), "--type", "cross_sell", "--min-probability", "60"]) == 0

        exported = list(tmp_path.glob("tahminler_cross_sell_*.xlsx"))
        assert len(exported) == 1
        df = pd.read_excel(exported[0], sheet_name=SHEET_NAME)
        assert (df["Satış Olasılığı (%)"] >= 60).all()

        assert main(["--list"]) == 0
        assert "cross_sell" in capsys.readouterr().out

    def test_invalid_filter(self, cli_env, edge_profiles, capsys):
        self.seed(cli_env, edge_profiles)
        assert main(["--export", "out.xlsx", "--min-probability", "90", "--max-probability", "10"]) == 1
        assert "greater than" in capsys.readouterr().out
