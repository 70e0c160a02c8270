"""Tests for the command line interface."""
import json

import pytest

from shopgrade.cli import main
from shopgrade.config import config

DATA = {
    "listings": [{"listing_id": 5, "title": "Silver Ring", "price": 20}],
    "shops": {
        "Mine": {"shop_name": "My Shop", "metrics": {"totalSales": 100}},
        "Rival": {"shop_name": "Rival", "metrics": {"totalSales": 1000}},
    },
    "competitor_prices": {"jewelry": [10, 20, 30, 40]},
}


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(DATA))
    return str(path)


def _run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


class TestGrade:
    def test_from_file(self, tmp_path, capsys):
        path = tmp_path / "listing.json"
        path.write_text(json.dumps({"listing_id": 1}))
        main(["grade", "--file", str(path)])
        assert "SEO Grade: F" in capsys.readouterr().out

    def test_json_output(self, tmp_path, capsys):
        path = tmp_path / "listing.json"
        path.write_text(json.dumps({"listing_id": 1}))
        main(["grade", "--file", str(path), "--json"])
        assert json.loads(capsys.readouterr().out)["score"] == 39

    def test_save(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setattr(config, "REDIS_URL", None)
        path = tmp_path / "listing.json"
        path.write_text(json.dumps({"listing_id": 3}))
        main(["grade", "--file", str(path), "--save"])
        assert "Saved grade for listing 3" in capsys.readouterr().out

    def test_from_data_source(self, data_file, capsys):
        main(["grade", "--listing-id", "5", "--data", data_file])
        assert "SEO Grade" in capsys.readouterr().out

    def test_unknown_listing(self, data_file, capsys):
        assert _run(["grade", "--listing-id", "99", "--data", data_file]) == 1
        assert "❌ Unknown listing 99" in capsys.readouterr().out

    def test_no_input(self, capsys):
        assert _run(["grade"]) == 1
        assert "No input" in capsys.readouterr().out

    def test_etsy_without_key(self, monkeypatch, capsys):
        monkeypatch.setattr(config, "ETSY_API_KEY", "")
        assert _run(["grade", "--listing-id", "5", "--etsy"]) == 1
        assert "ETSY_API_KEY" in capsys.readouterr().out


class TestBulk:
    def test_bulk_to_json(self, tmp_path, capsys):
        src = tmp_path / "listings.csv"
        src.write_text("listing_id,title\n1,Ring\n2,Necklace\n")
        out = tmp_path / "grades.json"
        main(["bulk", "--file", str(src), "--output", str(out)])
        assert "Parsed 2 listings" in capsys.readouterr().out
        assert [g["listing_id"] for g in json.loads(out.read_text())] == [1, 2]

    def test_unknown_output_format(self, tmp_path):
        src = tmp_path / "listings.csv"
        src.write_text("listing_id,title\n1,Ring\n")
        assert _run(["bulk", "--file", str(src), "--output", str(tmp_path / "grades.xml")]) == 1


class TestCompare:
    def test_compare(self, data_file, capsys):
        main(["compare", "--shop", "Mine", "--category", "jewelry", "-c", "Rival", "--data", data_file])
        out = capsys.readouterr().out
        assert "🏪 My Shop vs jewelry" in out
        assert "fewer sales" in out

    def test_report(self, data_file, capsys):
        main(["compare", "--shop", "Mine", "--category", "jewelry", "--report", "--data", data_file])
        assert "PERCENTILE RANKINGS" in capsys.readouterr().out

    def test_unknown_shop(self, data_file, capsys):
        assert _run(["compare", "--shop", "Ghost", "--category", "art", "--data", data_file]) == 1
        assert "Could not load shop data for Ghost" in capsys.readouterr().out


class TestHealth:
    def test_summary_and_report(self, tmp_path, capsys):
        path = tmp_path / "health.json"
        path.write_text(json.dumps({
            "listings": [{"listing_id": 1}],
            "metrics": {"averageRating": 4.8, "policyCompleteness": 100},
        }))
        main(["health", "--file", str(path), "--shop", "Mine"])
        assert "Shop Health" in capsys.readouterr().out
        main(["health", "--file", str(path), "--shop", "Mine", "--report"])
        assert "QUICK WINS" in capsys.readouterr().out


class TestPricing:
    def test_price_from_data(self, data_file, capsys):
        main(["price", "--price", "20", "--category", "jewelry", "--data", data_file])
        out = capsys.readouterr().out
        assert "Pricing Recommendation" in out
        assert "Recommended: $20.00" in out

    def test_price_synthetic(self, capsys):
        main(["price", "--price", "20", "--category", "jewelry", "-k", "ring, silver"])
        assert "Pricing Recommendation" in capsys.readouterr().out

    def test_invalid_margin(self, data_file, capsys):
        code = _run(["price", "--price", "20", "--category", "jewelry",
                     "--cost", "5", "--margin", "100", "--data", data_file])
        assert code == 1
        assert "Target margin" in capsys.readouterr().out

    def test_psych(self, capsys):
        main(["psych", "--price", "20"])
        out = capsys.readouterr().out
        assert "💲 $20.00 → $19.99" in out
        assert "Round prices" in out

    def test_psych_rejects_zero(self):
        assert _run(["psych", "--price", "0"]) == 1


class TestMisc:
    def test_benchmarks(self, capsys):
        main(["benchmarks"])
        out = capsys.readouterr().out
        assert "jewelry: avg" in out
        assert "art: avg" in out

    def test_unknown_benchmark(self, capsys):
        main(["benchmarks", "--category", "pottery"])
        assert "pottery: no benchmark" in capsys.readouterr().out

    def test_no_command(self):
        assert _run([]) == 1
