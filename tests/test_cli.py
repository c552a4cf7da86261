import subprocess
import sys
from pathlib import Path

import pandas as pd

from itemrec.cli import EXIT_FATAL, EXIT_OK, main, parse_args

ROOT = Path(__file__).resolve().parent.parent


def test_cli_help():
    result = subprocess.run(
        [sys.executable, str(ROOT / "scripts" / "run_model_constructor.py"), "--help"],
        capture_output=True, text=True, cwd=ROOT,
    )
    assert result.returncode == 0
    assert "model constructor" in result.stdout.lower()
    assert "--numRecommendations" in result.stdout


def test_parse_args_camel_case_option_names():
    args = parse_args([
        "--inputDir", "in/", "--appid", "3", "--algoid", "4", "--evalid", "9",
        "--modelSet", "true", "--unseenOnly", "false", "--numRecommendations", "20",
    ])
    assert args.input_dir == "in/"
    assert (args.appid, args.algoid, args.evalid) == (3, 4, 9)
    assert args.model_set is True and args.unseen_only is False
    assert args.num_recommendations == 20


def test_main_end_to_end_offline_eval(toy_inputs, tmp_path, monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    store = tmp_path / "store"
    code = main([
        "--inputDir", str(toy_inputs), "--appid", "1", "--algoid", "2", "--evalid", "5",
        "--modelSet", "false", "--unseenOnly", "true", "--numRecommendations", "2",
        "--sink-dir", str(store), "--max-workers", "1",
    ])
    assert code == EXIT_OK
    files = list((store / "training_itemrec_scores").glob("*.parquet"))
    assert len(files) == 1
    row = pd.read_parquet(files[0]).iloc[0]
    assert row["uid"] == "alice"
    assert list(row["iids"]) == ["apple", "bread"]
    assert row["appid"] == 5


def test_main_missing_required_args(monkeypatch):
    monkeypatch.delenv("ITEMREC_INPUT_DIR", raising=False)
    assert main(["--appid", "1"]) == EXIT_FATAL


def test_main_malformed_input(toy_inputs, tmp_path):
    (toy_inputs / "itemsIndex.tsv").write_text("1\tapple\n")
    code = main([
        "--inputDir", str(toy_inputs), "--appid", "1", "--algoid", "2",
        "--sink-dir", str(tmp_path / "store"),
    ])
    assert code == EXIT_FATAL
    assert not (tmp_path / "store").exists()


def test_main_unreadable_input_is_fatal(toy_inputs, tmp_path):
    (toy_inputs / "usersIndex.tsv").write_bytes(b"1\t\xff\xfealice\n")
    code = main([
        "--inputDir", str(toy_inputs), "--appid", "1", "--algoid", "2",
        "--sink-dir", str(tmp_path / "store"),
    ])
    assert code == EXIT_FATAL


def test_main_input_dir_is_a_file_is_fatal(tmp_path):
    not_a_dir = tmp_path / "input"
    not_a_dir.write_text("")
    code = main([
        "--inputDir", str(not_a_dir), "--appid", "1", "--algoid", "2",
        "--sink-dir", str(tmp_path / "store"),
    ])
    assert code == EXIT_FATAL
