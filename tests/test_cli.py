"""Tests for the recall CLI: argument parsing, replay, discover, interactive."""

import argparse
import asyncio
import json
import logging
import random
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from recall.cli.__main__ import build_parser, main
from recall.cli.commands.helpers import (
    load_options_file,
    non_negative_float,
    options_from_args,
    positive_float,
)
from recall.cli.commands.interactive import InteractiveSession
from recall.discovery import CollaboratorBundle, DiscoveredFactory
from recall.engine import Recall
from recall.protocols import BaseFunnels

# ============================================================================
# Fake collaborators
# ============================================================================


class FakeAcquisition:
    """Accepts everything, echoing a supportive merge."""

    def __init__(self):
        self.requests = []

    async def consider(self, request):
        self.requests.append(request)
        return {
            "decision": "accept",
            "score": 0.6,
            "merger_result": {
                "stance": "supportive",
                "template": "I like {noun}",
                "lexicon": {"nouns": ["tea"]},
            },
            "snapshot": {"energy": 0.8, "stance": "collaborative"},
        }

    def get_stats(self):
        return {"accepted": len(self.requests)}


class FakeRelational:
    def __init__(self):
        self.turns = []

    async def process_turn(self, agent_id, text, *, from_user_id=None, generation_config=None):
        self.turns.append(generation_config)
        return {"base_response": {"text": f"{agent_id} heard: {text}"}}

    def get_interaction(self, a, b):
        return SimpleNamespace(state={"trust": 0.5})

    def get_social_dynamics(self):
        return {"agents": 2}


def fake_factory(*, user_id, agent_id):
    merger = SimpleNamespace(
        get_generation_config=lambda speaker, target, fallback: {
            "stance": "supportive",
            "templates": ["a", "b", "c", "d"],
            "lexicon": {},
        },
        get_debug_bucket=lambda name: {"templates": [name]},
    )
    return CollaboratorBundle(
        relational=FakeRelational(), merger=merger, acquisition=FakeAcquisition()
    )


@pytest.fixture(autouse=True)
def clean_recall_logger():
    yield
    logger = logging.getLogger("recall")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def _write_events(path, lines):
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


# ============================================================================
# Helpers
# ============================================================================


class TestArgTypes:
    def test_non_negative_float(self):
        assert non_negative_float("0") == 0.0
        with pytest.raises(argparse.ArgumentTypeError):
            non_negative_float("-1")
        with pytest.raises(argparse.ArgumentTypeError):
            non_negative_float("nan")
        with pytest.raises(argparse.ArgumentTypeError):
            non_negative_float("abc")

    def test_positive_float(self):
        assert positive_float("2.5") == 2.5
        with pytest.raises(argparse.ArgumentTypeError):
            positive_float("0")


class TestOptions:
    def test_load_options_file_recall_section(self, tmp_path):
        path = tmp_path / "opts.json"
        path.write_text(json.dumps({"recall": {"decayRate": 0.1}, "funnels": {}}))
        assert load_options_file(str(path)) == {"decayRate": 0.1}

    def test_load_options_file_flat(self, tmp_path):
        path = tmp_path / "opts.json"
        path.write_text(json.dumps({"max_energy_scale": 0.2}))
        assert load_options_file(str(path)) == {"max_energy_scale": 0.2}

    def test_load_options_file_not_object(self, tmp_path):
        path = tmp_path / "opts.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="expected a JSON object"):
            load_options_file(str(path))

    def test_cli_overrides_file(self, tmp_path):
        path = tmp_path / "opts.json"
        path.write_text(json.dumps({"decay_rate": 0.1, "max_novelty_bias": 0.2}))
        args = build_parser().parse_args(
            ["replay", "events.jsonl", "--config", str(path), "--decay-rate", "0.5"]
        )
        assert options_from_args(args) == {"decay_rate": 0.5, "max_novelty_bias": 0.2}


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_interactive_defaults(self):
        args = build_parser().parse_args(["interactive", "--collaborators", "pkg:factory"])
        assert args.user_id == "Me"
        assert args.agent_id == "Agent"

    def test_rejects_negative_limit(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["replay", "x.jsonl", "--max-energy-scale", "-1"])


# ============================================================================
# replay
# ============================================================================


class TestReplay:
    def test_json_report(self, tmp_path, capsys):
        events = _write_events(
            tmp_path / "events.jsonl",
            [
                "# recorded session",
                json.dumps({"speaker_id": "A", "stance": "defensive"}),
                "",
                json.dumps({"speaker_id": "A", "stance": "defensive"}),
                json.dumps({"speaker_id": "B", "stance": "supportive", "snapshot": {"energy": 0.9}}),
                "{not json",
                json.dumps({"stance": "neutral"}),
            ],
        )
        assert main(["replay", events, "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["accepted"] == 3
        assert report["skipped"] == 2
        assert set(report["agents"]) == {"A", "B"}
        assert report["agents"]["A"]["samples"] == 2
        assert report["agents"]["A"]["statistics"]["stance_balance"]["net_tone"] == -1.0
        assert report["agents"]["B"]["bias"]["energy_scale"] == pytest.approx(1.064)
        assert "funnels" not in report

    def test_apply_bias_reports_funnels(self, tmp_path, capsys):
        events = _write_events(
            tmp_path / "events.jsonl",
            [json.dumps({"speaker_id": "A", "stance": "supportive", "snapshot": {"energy": 1.0}})] * 5,
        )
        assert main(["replay", events, "--apply-bias", "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["funnels"]["energy_mean"] > 0.5

    def test_agent_filter_and_tuning(self, tmp_path, capsys):
        events = _write_events(
            tmp_path / "events.jsonl",
            [json.dumps({"speaker_id": "A"}), json.dumps({"speaker_id": "B"})],
        )
        assert main(["replay", events, "--agent", "B", "--min-samples", "1", "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert list(report["agents"]) == ["B"]
        assert report["agents"]["B"]["statistics"]["warmup"] == 1.0

    def test_text_report(self, tmp_path, capsys):
        events = _write_events(tmp_path / "events.jsonl", [json.dumps({"speaker_id": "A"})])
        assert main(["replay", events, "--apply-bias"]) == 0
        out = capsys.readouterr().out
        assert "Replayed 1 events (0 skipped)" in out
        assert "rut=" in out
        assert "funnels energy_mean=" in out

    def test_camel_case_lines(self, tmp_path, capsys):
        events = _write_events(
            tmp_path / "events.jsonl",
            [json.dumps({"speakerId": "A", "stance": "supportive", "snapshot": {"stanceBand": "supportive"}})],
        )
        assert main(["replay", events, "--apply-bias", "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["accepted"] == 1
        assert report["agents"]["A"]["samples"] == 1

    def test_missing_file(self, tmp_path):
        assert main(["replay", str(tmp_path / "missing.jsonl")]) == 1

    def test_bad_config_value(self, tmp_path):
        events = _write_events(tmp_path / "events.jsonl", [json.dumps({"speaker_id": "A"})])
        config = tmp_path / "opts.json"
        config.write_text(json.dumps({"minSamplesForBias": 0}))
        assert main(["replay", events, "--config", str(config)]) == 1


# ============================================================================
# discover
# ============================================================================


class TestDiscover:
    def test_empty(self, capsys):
        with patch("recall.cli.commands.discover.discover_factories", return_value=[]):
            assert main(["discover"]) == 0
        assert "No collaborator factories" in capsys.readouterr().out

    def test_json(self, capsys):
        found = [DiscoveredFactory(name="demo", module="demo_pkg", attr="build", dist_name="demo")]
        with patch("recall.cli.commands.discover.discover_factories", return_value=found):
            assert main(["discover", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data == [{"name": "demo", "qualname": "demo_pkg:build", "dist": "demo"}]


# ============================================================================
# interactive
# ============================================================================


def _session(funnels=None, **kwargs):
    bundle = fake_factory(user_id="Me", agent_id="Agent")
    bundle.funnels = funnels
    bundle = CollaboratorBundle.coerce(bundle)
    engine = Recall(bundle.relational, bundle.merger, bundle.funnels)
    output = []
    session = InteractiveSession(engine, bundle, rng=random.Random(7), out=output.append, **kwargs)
    return session, output


class TestInteractiveSession:
    def test_turn_records_both_speakers(self):
        session, output = _session()
        telemetry = asyncio.run(session.handle_turn("hello"))

        assert session.recall.get_agent_profile("Me").samples == 1
        assert session.recall.get_agent_profile("Agent").samples == 1
        assert telemetry["agent_acquisition"] == {"decision": "accept", "score": 0.6}
        assert telemetry["generation_config"]["source"] == "merger"
        assert telemetry["generation_config"]["templates"] == ["a", "b", "c"]
        assert any("Agent heard: hello" in line for line in output)

    def test_requests_carry_direction_and_channels(self):
        session, _ = _session()
        asyncio.run(session.handle_turn("hello"))
        requests = session.bundle.acquisition.requests
        assert [r["direction"] for r in requests] == ["incoming", "outgoing"]
        assert requests[0]["source_type"] == "user"
        assert requests[1]["source_type"] == "internal"
        assert all(r["channels"] == ["cli"] for r in requests)

    def test_generation_config_passed_to_relational(self):
        session, _ = _session()
        asyncio.run(session.handle_turn("hello"))
        assert session.bundle.relational.turns[0]["stance"] == "supportive"

    def test_bias_pushed_to_funnels(self):
        funnels = BaseFunnels()
        session, _ = _session(funnels=funnels)
        asyncio.run(session.handle_turn("hello"))
        assert set(funnels.agent_biases) == {"Me", "Agent"}
        assert funnels.state.observations == 1

    def test_rejected_utterance_not_recorded(self):
        session, _ = _session()
        session.bundle.acquisition.consider = MagicMock(return_value={"decision": "reject", "score": 0.1})
        result = asyncio.run(
            session.acquire_and_remember(
                text="x", speaker_id="Me", target_id="Agent", source_type="user", direction="incoming"
            )
        )
        assert result["bias"] is None
        assert session.recall.get_agent_profile("Me") is None

    @pytest.mark.parametrize("cmd", ["/bias", "/funnels", "/rel", "/stats", "/lex"])
    def test_commands(self, cmd):
        session, output = _session()
        asyncio.run(session.handle_command(cmd))
        assert output
        assert "Unknown command." not in output

    def test_unknown_command(self):
        session, output = _session()
        asyncio.run(session.handle_command("/dance"))
        assert output == ["Unknown command."]

    def test_rel_unavailable(self):
        session, output = _session()
        session.bundle.relational.get_interaction = MagicMock(side_effect=KeyError("none"))
        asyncio.run(session.handle_command("/rel"))
        assert "\n[Relational snapshot not available yet]" in output

    def test_run_until_exit(self):
        session, output = _session()
        lines = iter(["hello", "", "/bias", "/exit", "never read"])

        async def read_line(prompt):
            return next(lines)

        asyncio.run(session.run(read_line))
        assert session.recall.get_agent_profile("Agent").samples == 1
        assert "\nFinal diagnostics:" in output
        assert next(lines) == "never read"

    def test_long_message_does_not_end_session(self):
        session, output = _session()
        lines = iter(["x" * 5000, "hello", "/exit"])

        async def read_line(prompt):
            return next(lines)

        asyncio.run(session.run(read_line))
        assert any(line.startswith("Message ignored: utterance too long") for line in output)
        assert session.recall.get_agent_profile("Agent").samples == 1
        assert "\nFinal diagnostics:" in output

    def test_run_until_eof(self):
        session, output = _session()

        async def read_line(prompt):
            return None

        asyncio.run(session.run(read_line))
        assert "\nFinal diagnostics:" in output


class TestCmdInteractive:
    def test_runs_with_factory_until_eof(self, monkeypatch, capsys, isolated_data_dir):
        def fake_input(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", fake_input)
        assert main(["interactive", "--collaborators", f"{__name__}:fake_factory"]) == 0
        out = capsys.readouterr().out
        assert "You are talking to agent: Agent" in out
        assert list((isolated_data_dir / "logs").glob("local-*.log"))

    def test_bad_factory(self):
        assert main(["interactive", "--collaborators", "no_such_module_xyz:build"]) == 1
