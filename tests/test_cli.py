"""
Tests for the command-line interface.
"""

import pytest

from flavordiet.cli import build_parser, main
from flavordiet.config import ENV_DATA_PATH


@pytest.fixture(autouse=True)
def no_env_data(monkeypatch):
    monkeypatch.delenv(ENV_DATA_PATH, raising=False)


class TestParser:
    def test_report_options(self, tmp_path):
        args = build_parser().parse_args(
            [
                "report",
                "--data",
                str(tmp_path / "food.csv"),
                "--drop-level",
                "sour",
                "--drop-level",
                "bitter",
                "--seed",
                "9",
                "--sensitivity-priors",
                "vague",
                "cauchy",
                "--no-plots",
            ]
        )
        assert args.data_path == tmp_path / "food.csv"
        assert args.drop_levels == ["sour", "bitter"]
        assert args.random_seed == 9
        assert args.sensitivity_priors == ["vague", "cauchy"]
        assert args.no_plots

    def test_config_from_args(self, tmp_path):
        from flavordiet.cli import _config_from_args

        args = build_parser().parse_args(
            ["report", "--drop-level", "sour", "--chains", "2", "--skip-sensitivity", "--no-plots"]
        )
        config = _config_from_args(args)
        assert config.drop_levels == ("sour",)
        assert config.chains == 2
        assert config.draws == 2000
        assert not config.run_sensitivity
        assert not config.make_plots


class TestCommands:
    def test_no_command_prints_help(self, capsys):
        main([])
        assert "usage: flavordiet" in capsys.readouterr().out

    def test_priors(self, capsys):
        main(["priors"])
        out = capsys.readouterr().out
        assert "weakly_informative (default)" in out
        assert "cauchy" in out
        assert "Student-t(3, 0, 2.5)" in out

    def test_describe(self, recipes_csv, capsys):
        main(["describe", "--data", str(recipes_csv)])
        out = capsys.readouterr().out
        assert "Cleaning summary" in out
        assert "Flavor x diet" in out
        assert "Levels with no variation in diet: bitter" in out

    def test_classical(self, recipes_csv, capsys):
        main(["classical", "--data", str(recipes_csv), "--permutation-resamples", "50", "--seed", "1"])
        out = capsys.readouterr().out
        assert "Pearson chi-squared" in out
        assert "Permutation (Pearson)" in out
        assert "Unstable estimates: bitter" in out
        assert "L2-penalized logistic regression" in out

    def test_missing_data_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["describe", "--data", str(tmp_path / "missing.csv")])
        assert exc.value.code == 1
        assert "Error:" in capsys.readouterr().err

    def test_bad_reference_level(self, recipes_csv, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["classical", "--data", str(recipes_csv), "--reference-level", "umami"])
        assert exc.value.code == 1
        assert "umami" in capsys.readouterr().err
