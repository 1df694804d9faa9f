import pytest

from neon_descent.config import BALANCE_ENV_VAR, load_balance
from neon_descent.exceptions import ConfigError


def _write(tmp_path, text):
    path = tmp_path / "balance.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_embedded_defaults(balance):
    assert balance.starting.hp == 100
    assert balance.starting.power == 10
    assert balance.alert.kill_switch_threshold == 90
    assert balance.economy.module_stack_cap == 5
    assert balance.contracts.capacity == 2


def test_partial_file_keeps_other_defaults(tmp_path):
    cfg = load_balance(_write(tmp_path, "economy:\n  miner_income: 25\n"))
    assert cfg.economy.miner_income == 25
    assert cfg.economy.repair_base_cost == 41
    assert cfg.combat.floor_scaling == pytest.approx(1.035)


def test_empty_file_means_defaults(tmp_path):
    assert load_balance(_write(tmp_path, "")).starting.hp == 100


def test_env_var_points_at_a_file(tmp_path, monkeypatch):
    monkeypatch.setenv(BALANCE_ENV_VAR, str(_write(tmp_path, "alert:\n  shop_exit_drift: 2\n")))
    assert load_balance().alert.shop_exit_drift == 2


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_balance(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "text",
    [
        "combat:\n  bogus: 1\n",
        "starting:\n  hp: 150\n  max_hp: 100\n",
        "alert:\n  kill_switch_chance: 2.0\n",
        "- 1\n- 2\n",
        "starting: [1, 2\n",
    ],
)
def test_invalid_files_raise_config_error(tmp_path, text):
    with pytest.raises(ConfigError):
        load_balance(_write(tmp_path, text))
