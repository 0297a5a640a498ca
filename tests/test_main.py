from __future__ import annotations

import pytest

from chronodose_agent import main
from chronodose_agent.models import CenterInfo


def test_parse_location():
    assert main.parse_location("48.86, 2.33") == (48.86, 2.33)


@pytest.mark.parametrize("raw", ["48.86", "north,east", ""])
def test_parse_location_rejects_garbage(raw):
    with pytest.raises(ValueError):
        main.parse_location(raw)


def test_cli_overrides():
    args = main.parse_args(
        ["--departments", "69", "1", "--location", "45.76,4.84", "--radius-km", "5", "--max-concurrency", "2"]
    )

    assert main.cli_overrides(args) == {
        "departments": [69, 1],
        "reference_latitude": 45.76,
        "reference_longitude": 4.84,
        "radius_km": 5.0,
        "max_concurrent_scans": 2,
    }


def test_invalid_location_exits():
    args = main.parse_args(["--location", "somewhere"])

    with pytest.raises(SystemExit):
        main.cli_overrides(args)


def test_cli_prints_table(monkeypatch, capsys):
    async def fake_collect(settings):
        return [CenterInfo(1.0, 2, "", "1 rue de Rivoli", "https://a.example")]

    monkeypatch.setattr(main, "collect_center_infos", fake_collect)

    assert main.cli(["--radius-km", "3"]) == 0
    assert "1 rue de Rivoli" in capsys.readouterr().out


def test_cli_rejects_invalid_settings():
    assert main.cli(["--radius-km", "-1"]) == 2
