#!/usr/bin/env python3
"""
Context Action Learner - Command Line Interface

Replay recorded transitions through the learner and inspect what it predicts.

Usage:
    python cli.py replay transitions.jsonl
    python cli.py predict --state '{"level": 2, "lives": 3}' --replay transitions.jsonl
    python cli.py stats --replay transitions.jsonl --store prefs.json

Transition files hold one JSON object per line:
    {"session": "game-1", "state": {...}, "action": "jump",
     "reward": 1.0, "next_state": {...}, "success": true}
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, Iterator, List, Optional

from learner.config import EngineConfig
from learner.engine import PredictionOrchestrator

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='learner-cli',
        description='Context Action Learner'
    )
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')
    parser.add_argument('--mode', '-m', choices=['passive', 'active', 'autonomous'],
                        default=None, help='Learning mode')
    parser.add_argument('--domain', '-d', type=str, default=None,
                        help='Domain hint (e.g. action, strategy, rpg)')
    parser.add_argument('--store', '-s', type=str, default=None,
                        help='JSON preference file to load from and save to')
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='Engine configuration file (JSON)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Replay command
    replay_parser = subparsers.add_parser('replay', help='Replay a transition file')
    replay_parser.add_argument('file', type=str, help='JSON-lines transition file')

    # Predict command
    predict_parser = subparsers.add_parser('predict', help='Rank actions for a state')
    predict_parser.add_argument('--state', type=str, default='{}',
                                help='State as inline JSON or a .json file')
    predict_parser.add_argument('--session', type=str, default='default',
                                help='Session id')
    predict_parser.add_argument('--replay', type=str, default=None,
                                help='Transition file to learn from first')
    predict_parser.add_argument('--limit', '-l', type=int, default=5,
                                help='Max predictions shown')

    # Stats command
    stats_parser = subparsers.add_parser('stats', help='Show engine statistics')
    stats_parser.add_argument('--replay', type=str, default=None,
                              help='Transition file to learn from first')

    return parser


def build_engine(args) -> PredictionOrchestrator:
    config = EngineConfig.load(args.config) if args.config else EngineConfig.from_env()
    config = config.with_overrides(learning_mode=args.mode,
                                   domain_hint=args.domain,
                                   store_path=args.store)
    engine = PredictionOrchestrator(config)
    engine.start()
    if config.store_path and os.path.exists(config.store_path):
        engine.load()
    return engine


def read_transitions(path: str) -> Iterator[Dict[str, Any]]:
    with open(path, 'r') as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except ValueError as e:
                logger.warning(f"{path}:{line_no}: skipping invalid JSON ({e})")
                continue
            if not isinstance(record, dict) or 'action' not in record:
                logger.warning(f"{path}:{line_no}: skipping record without an action")
                continue
            yield record


def replay(engine: PredictionOrchestrator, path: str, echo: bool = False) -> int:
    """Feed every transition through predict / observe / feedback"""
    steps = 0
    for record in read_transitions(path):
        session = str(record.get('session', 'default'))
        action = str(record['action'])
        state = record.get('state') or {}
        next_state = record.get('next_state') or {}

        predictions = engine.predict(session, state)
        engine.observe(session, action, record.get('reward', 0.0), next_state)
        if 'success' in record:
            engine.feedback(session, action, bool(record['success']), state)

        steps += 1
        if echo and predictions:
            top = predictions[0]
            hit = "*" if top.action == action else " "
            print(f"{steps:4d} {hit} [{session}] predicted {top.action} "
                  f"({top.confidence:.2f}), took {action}")
    return steps


def parse_state(text: str) -> Optional[Dict[str, Any]]:
    if text.endswith('.json'):
        with open(text, 'r') as f:
            data = json.load(f)
    else:
        data = json.loads(text)
    return data if isinstance(data, dict) else None


def finish(engine: PredictionOrchestrator):
    if engine.config.store_path and not engine.save():
        print(f"Warning: could not save to {engine.config.store_path}")


def cmd_replay(args) -> int:
    engine = build_engine(args)
    try:
        steps = replay(engine, args.file, echo=True)
    except OSError as e:
        print(f"Error reading transitions: {e}")
        return 1

    stats = engine.stats()
    print("-" * 50)
    print(f"Replayed {steps} transitions across {stats['sessions']} sessions")
    print(f"States learned: {stats['value_table']['states']}")
    print(f"Rules induced: {stats['rules']['rules']}")
    print(f"Context patterns: {stats['registry']['pattern_count']}")
    finish(engine)
    return 0


def cmd_predict(args) -> int:
    try:
        state = parse_state(args.state)
    except (OSError, ValueError) as e:
        print(f"Error parsing state: {e}")
        return 1
    if state is None:
        print("Error parsing state: expected a JSON object")
        return 1

    engine = build_engine(args)
    if args.replay:
        try:
            replay(engine, args.replay)
        except OSError as e:
            print(f"Error reading transitions: {e}")
            return 1

    predictions = engine.predict(args.session, state)
    print(json.dumps([p.to_dict() for p in predictions[:args.limit]], indent=2))

    suggestions = engine.suggest(state)
    if suggestions:
        print("Suggestions from learned contexts:")
        for s in suggestions:
            print(f"  {s.action_type} ({s.confidence:.2f}) {json.dumps(s.parameters)}")
    finish(engine)
    return 0


def cmd_stats(args) -> int:
    engine = build_engine(args)
    if args.replay:
        try:
            replay(engine, args.replay)
        except OSError as e:
            print(f"Error reading transitions: {e}")
            return 1
    print(json.dumps(engine.stats(), indent=2, default=str))
    finish(engine)
    return 0


def main(argv: List[str] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s %(message)s'
    )

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        'replay': cmd_replay,
        'predict': cmd_predict,
        'stats': cmd_stats,
    }

    try:
        return commands[args.command](args)
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2


if __name__ == '__main__':
    sys.exit(main() or 0)
