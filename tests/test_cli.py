import pandas as pd
import pytest

from suspicious_login.cli import main
from suspicious_login.config import DAY
from suspicious_login.store import DirectoryModelStore
from suspicious_login.synth.generator import SynthConfig, generate


@pytest.fixture
def logins_csv(tmp_path):
    paths = generate(SynthConfig(out_dir=str(tmp_path / "synth"), days=30, n_users=20, target_logins=400, seed=11))
    return paths["logins"]


def latest_ts(path):
    return int(pd.read_csv(path)["timestamp"].max())


def test_train_command(logins_csv, tmp_path, capsys):
    out = tmp_path / "models"
    now = latest_ts(logins_csv) + 1
    code = main(["train", "--events", logins_csv, "--out", str(out), "--now", str(now),
                 "--epochs", "2", "--seed", "1", "--stats"])

    printed = capsys.readouterr().out
    assert code == 0
    assert "Using IPv4 strategy" in printed
    assert "So far 400 logins have been captured" in printed
    history = DirectoryModelStore(str(out)).history()
    assert len(history) == 1
    assert history[0][0]["trained_at"] == now
    assert history[0][0]["epochs"] == 2


def test_train_command_without_enough_data(logins_csv, capsys):
    # the max-age window ends before the first login
    code = main(["train", "--events", logins_csv, "--now", str(latest_ts(logins_csv) + 90 * DAY),
                 "--max-age", str(30 * DAY)])

    assert code == 1
    assert "Not enough data, try again later" in capsys.readouterr().out


def test_train_command_v6_on_ipv4_log(logins_csv, capsys):
    code = main(["train", "--events", logins_csv, "--v6", "--now", str(latest_ts(logins_csv) + 1)])

    printed = capsys.readouterr().out
    assert code == 1
    assert "Using IPv6 strategy" in printed
    assert "Not enough data" in printed


def test_train_command_rejects_bad_rate(logins_csv, capsys):
    code = main(["train", "--events", logins_csv, "--shuffled", "1.5"])

    assert code == 2
    assert "shuffled_negative_rate" in capsys.readouterr().err


def test_stats_command(logins_csv, tmp_path, capsys):
    code = main(["stats", "--events", logins_csv, "--model-dir", str(tmp_path / "none")])

    printed = capsys.readouterr().out
    assert code == 0
    assert "So far 400 logins" in printed
    assert "No classifier model has been trained yet" in printed


def test_train_command_with_missing_csv(tmp_path, capsys):
    code = main(["train", "--events", str(tmp_path / "absent.csv")])

    assert code == 1
    assert "Could not train a model: cannot read login events" in capsys.readouterr().out


def test_train_command_with_huge_learning_rate(logins_csv, capsys):
    code = main(["train", "--events", logins_csv, "--now", str(latest_ts(logins_csv) + 1),
                 "--learn-rate", "3e38", "--epochs", "1", "--seed", "1"])

    printed = capsys.readouterr().out
    assert code == 1
    assert "Could not train a model: training diverged" in printed


def test_stats_command_with_unparseable_timestamp(tmp_path, capsys):
    path = tmp_path / "logins.csv"
    path.write_text("ip,uid,timestamp\n10.0.0.1,alice,garbage\n")

    code = main(["stats", "--events", str(path)])

    assert code == 1
    assert "Could not compute statistics" in capsys.readouterr().out
