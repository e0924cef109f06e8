"""
Tests for the command line interface.
"""

import sys
import os
import json
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from cli import main, create_parser, read_transitions, parse_state

TRANSITIONS = [
    {"session": "g1", "state": {"level": 1}, "action": "attack", "reward": 1.0,
     "next_state": {"level": 2}, "success": True},
    {"session": "g1", "state": {"level": 2}, "action": "jump", "reward": 0.5,
     "next_state": {"level": 3}},
    {"session": "g2", "state": {"level": 1}, "action": "attack", "reward": 1.0,
     "next_state": {"level": 2}, "success": False},
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("LEARNER_"):
            monkeypatch.delenv(name)


def write_transitions(directory: str, records=None, extra_lines=()) -> str:
    path = os.path.join(directory, "transitions.jsonl")
    with open(path, 'w') as f:
        for record in records if records is not None else TRANSITIONS:
            f.write(json.dumps(record) + "\n")
        for line in extra_lines:
            f.write(line + "\n")
    return path


class TestParser:
    def test_global_options(self):
        args = create_parser().parse_args(["--mode", "passive", "--domain", "rpg", "stats"])
        assert args.mode == "passive"
        assert args.domain == "rpg"
        assert args.command == "stats"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestReplay:
    def test_replay_summary(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_transitions(tmpdir)
            assert main(["--domain", "action", "replay", path]) == 0

        out = capsys.readouterr().out
        assert "Replayed 3 transitions across 2 sessions" in out
        assert "Rules induced: 3" in out

    def test_bad_lines_are_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_transitions(tmpdir, extra_lines=["not json", '{"state": {}}', ""])
            assert len(list(read_transitions(path))) == 3

    def test_store_is_written(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_transitions(tmpdir)
            store = os.path.join(tmpdir, "prefs.json")
            assert main(["--store", store, "replay", path]) == 0
            assert os.path.exists(store)
            with open(store) as f:
                saved = json.load(f)
            assert saved['total_actions'] == 2
            assert "action_attack" in saved['pattern_keys']

    def test_missing_file(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            assert main(["replay", os.path.join(tmpdir, "nope.jsonl")]) == 1
        assert "Error reading transitions" in capsys.readouterr().out


class TestPredict:
    def test_predict_after_replay(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_transitions(tmpdir)
            code = main(["--domain", "action", "predict", "--state", '{"level": 1}',
                         "--replay", path, "--limit", "3"])
        assert code == 0
        out = capsys.readouterr().out
        predictions, _ = json.JSONDecoder().raw_decode(out)
        assert len(predictions) == 3
        assert predictions[0]['action'] == "attack"

    def test_state_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "state.json")
            with open(path, 'w') as f:
                json.dump({"lives": 2}, f)
            assert parse_state(path) == {"lives": 2}

    def test_invalid_state(self, capsys):
        assert main(["predict", "--state", "{broken"]) == 1
        assert main(["predict", "--state", "[1, 2]"]) == 1
        assert "Error parsing state" in capsys.readouterr().out


class TestStats:
    def test_stats_json(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_transitions(tmpdir)
            assert main(["--mode", "autonomous", "stats", "--replay", path]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats['observations_recorded'] == 3
        assert stats['registry']['learning_mode'] == "autonomous"

    def test_bad_config_file(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "engine.json")
            with open(path, 'w') as f:
                json.dump({"learning_rate": 4.0}, f)
            assert main(["--config", path, "stats"]) == 2
        assert "Configuration error" in capsys.readouterr().out


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
