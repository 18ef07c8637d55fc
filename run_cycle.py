#!/usr/bin/env python3
"""
Brain Cycle - Interactive Driver
================================

Runs perception -> cognition cycles from the terminal against the
configured agents and reservoir, with background stepping active.

Run: MISTRAL_API_KEY=... python3 run_cycle.py [--snapshot '{"action": "yank"}']
Commands: /status /history /quit
"""

import sys
import os
import json
import logging
import argparse

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config.settings import load_settings
from core.exceptions import ConfigError, NativeBoundaryError
from core.supervisor import BrainSupervisor
from integrations.agent_client import AgentClient


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Run perception -> cognition cycles')
    parser.add_argument('--snapshot', '-s', default='{}',
                        help='Sensory snapshot as JSON, sent with every cycle')
    parser.add_argument('--once', '-o', default=None,
                        help='Run a single cycle with this text and exit')
    parser.add_argument('--no-background', action='store_true',
                        help='Disable periodic background stepping')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        snapshot = json.loads(args.snapshot)
    except json.JSONDecodeError as e:
        print(f"ERROR: --snapshot is not valid JSON: {e}")
        return 1

    client = AgentClient.from_settings(settings)
    supervisor = BrainSupervisor.from_settings(settings, client)
    try:
        supervisor.start(background=not args.no_background)
    except NativeBoundaryError as e:
        print(f"ERROR: {e}")
        client.close()
        return 1

    try:
        if args.once is not None:
            result = supervisor.run_cycle(args.once, snapshot)
            print(json.dumps(result.to_dict(), indent=2))
            return 0 if result.ok else 2

        print("=" * 60)
        print("BRAIN CYCLE - type a message, or /status /history /quit")
        print("=" * 60)

        while True:
            try:
                user_input = input("\nYou: ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nGoodbye!")
                break

            if not user_input:
                continue
            if user_input.lower() in ['/quit', '/exit']:
                print("Goodbye!")
                break
            if user_input == '/status':
                print(json.dumps(supervisor.status(), indent=2))
                continue
            if user_input == '/history':
                for entry in supervisor.orchestrator.recent_cycles():
                    print(f"  [{entry['state']}] {entry['user_text'] or entry['error']}")
                continue

            result = supervisor.run_cycle(user_input, snapshot)
            if result.ok:
                print(f"\nAI: {result.user_text}")
                print(f"    (brain: {result.brain_summary})")
            else:
                print(f"\n[Cycle failed: {result.error}]")
    finally:
        supervisor.stop()
        client.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
