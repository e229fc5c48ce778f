"""Tests for the aquatrack-plan command."""

import json
import re

import pytest
from pydantic import ValidationError

pytestmark = pytest.mark.integration

from aquatrack.cli import invoke
from aquatrack.cli.invoke import build_parser, main, run_plan, utc_now_iso
from aquatrack.config import ENGINE_PACKAGE_PATH, PRODUCT_CATALOG_PATH, PROTOCOL_RULESET_PATH
from aquatrack.contracts import ContractViolation
from aquatrack.schemas import CLIConfig


GENERATED_AT = "2026-01-05T09:00:00Z"


@pytest.fixture
def setup_file(tmp_path, base_setup):
    path = tmp_path / "setup.json"
    path.write_text(json.dumps(base_setup), encoding="utf-8")
    return path


def argv(setup_file, *extra):
    return [str(setup_file), str(PRODUCT_CATALOG_PATH), str(ENGINE_PACKAGE_PATH), *extra]


class TestParser:
    """Test argument parsing."""

    def test_positionals_and_flags(self):
        """Three inputs, an optional output and the flags."""
        args = build_parser().parse_args(["s.json", "c.json", "p.json", "out.json", "--ack", "-v"])
        assert (args.setup, args.catalog, args.package, args.output) == ("s.json", "c.json", "p.json", "out.json")
        assert args.ack is True
        assert args.verbose is True
        assert args.log_level == "WARNING"

    def test_missing_arguments(self):
        """Missing inputs are a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            main(["setup.json"])
        assert exc_info.value.code == 2


class TestMain:
    """Test the command end to end."""

    def test_prints_plan(self, setup_file, capsys):
        """The plan is printed as JSON on stdout."""
        assert main(argv(setup_file, "--generated-at", GENERATED_AT)) == 0
        plan = json.loads(capsys.readouterr().out)
        assert plan["meta"]["generated_at_iso"] == GENERATED_AT
        assert plan["selection"]["user_selected_cycling_mode"] == "fishless_ammonia"

    def test_writes_output(self, setup_file, tmp_path, capsys):
        """The optional output path receives the same plan."""
        output = tmp_path / "plan.json"
        assert main(argv(setup_file, str(output), "--generated-at", GENERATED_AT)) == 0
        printed = json.loads(capsys.readouterr().out)
        assert json.loads(output.read_text(encoding="utf-8")) == printed

    def test_ack_and_ruleset(self, tmp_path, make_setup, capsys):
        """--ack clears the block; --ruleset selects the ruleset strategy."""
        path = tmp_path / "fish_in.json"
        path.write_text(json.dumps(make_setup({"user_preferences": {"cycling_mode_preference": "fish_in"}})))
        assert main(argv(path, "--ack", "--ruleset", str(PROTOCOL_RULESET_PATH))) == 0
        plan = json.loads(capsys.readouterr().out)
        assert plan["selection"]["blocked"] is False
        assert plan["meta"]["expansion_strategy"] == "ruleset"

    def test_user_targets(self, setup_file, tmp_path, capsys):
        """--targets replaces the package limits."""
        targets = tmp_path / "targets.json"
        targets.write_text(json.dumps({
            "temperature": {"min": 23, "max": 25},
            "pH": {"min": 6.5, "max": 7.0},
            "gh": {"min": 6, "max": 8},
            "kh": {"min": 2, "max": 4},
            "nitrate": {"min": 5, "max": 15},
        }))
        assert main(argv(setup_file, "--targets", str(targets))) == 0
        plan = json.loads(capsys.readouterr().out)
        assert plan["global_reference"]["targets"]["gh_dgh"]["target_range"] == [6, 8]

    def test_contract_violation_exit_code(self, setup_file, monkeypatch, capsys):
        """Engine defects exit with status 1 and print nothing."""
        def broken(*args, **kwargs):
            raise ContractViolation("Plan contract violated: missing 'phases' section")

        monkeypatch.setattr(invoke, "generate_plan", broken)
        assert main(argv(setup_file)) == 1
        assert capsys.readouterr().out == ""

    def test_missing_file(self, tmp_path):
        """A missing input file raises."""
        with pytest.raises(FileNotFoundError):
            main(argv(tmp_path / "absent.json"))

    def test_bad_timestamp(self, setup_file):
        """A malformed --generated-at is rejected before any file is read."""
        with pytest.raises(ValidationError):
            main(argv(setup_file, "--generated-at", "last tuesday"))


class TestRunPlan:
    """Test the programmatic entry point."""

    def test_run_plan(self, setup_file):
        """Runs from a CLIConfig; defaults the timestamp to now."""
        plan = run_plan(CLIConfig(
            setup_path=setup_file,
            catalog_path=PRODUCT_CATALOG_PATH,
            package_path=ENGINE_PACKAGE_PATH,
        ))
        assert plan["meta"]["generated_at_iso"].endswith("Z")
        assert plan["phases"]

    def test_utc_now_iso(self):
        """Millisecond precision with a Z suffix."""
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_now_iso())
