import asyncio
import json

import pytest

import stamina_cli
from StaminaBar.common.states import ActivityKind


def test_zone_command(capsys):
    assert stamina_cli.main(["zone", "150"]) == 0
    assert json.loads(capsys.readouterr().out)["band"] == "60"


def test_zone_command_rejects_negative(capsys):
    assert stamina_cli.main(["zone", "-1"]) == 2


def test_onboarding_command(capsys):
    assert stamina_cli.main(["onboarding"]) == 0
    assert capsys.readouterr().out.strip() == "not shown"
    stamina_cli.main(["onboarding", "--mark"])
    assert capsys.readouterr().out.strip() == "shown"
    stamina_cli.main(["onboarding", "--reset"])
    assert capsys.readouterr().out.strip() == "not shown"


def test_simulate_returns_summary(capsys):
    summary = asyncio.run(stamina_cli.simulate(ActivityKind.CYCLING, 12, every=4, seed=1))
    assert summary["activity"] == "cycling"
    assert summary["duration"] == 12.0
    assert summary["total_distance"] == pytest.approx(0.03)
    assert summary["average_heart_rate"] > 65
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 3
    assert "band" in lines[0]


def test_simulate_unknown_activity(capsys):
    assert stamina_cli.main(["simulate", "--activity", "curling"]) == 2
