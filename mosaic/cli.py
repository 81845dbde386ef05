"""
Mosaic CLI - Command-line interface for the relay and the engine.

Usage:
    mosaic serve [--host H] [--port P]              Run the state relay
    mosaic simulate [--seed N] [--games N] [--json] Play loopback matches
"""

import argparse
import json
import logging
import sys

from .relay.config import RelayConfig


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Mosaic - two-player tile drafting with a state relay",
        prog="mosaic",
    )
    parser.add_argument("--log-level", help="Logging level (default: MOSAIC_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the state relay")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.add_argument(
        "--reject-stale", action="store_true", help="Drop non-priority updates older than the stored one"
    )

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play loopback matches between two replicas")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Seed for the first match")
    simulate_parser.add_argument("--games", type=int, default=1, help="Number of matches")
    simulate_parser.add_argument("--max-actions", type=int, default=5000, help="Action cap per match")
    simulate_parser.add_argument("--json", action="store_true", help="Print reports as JSON lines")

    args = parser.parse_args(argv)
    config = RelayConfig.from_env()

    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        cmd_serve(args, config)
    elif args.command == "simulate":
        cmd_simulate(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args, config: RelayConfig):
    """Run the relay under uvicorn."""
    import uvicorn
    from .relay.app import create_app

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.reject_stale:
        config.reject_stale_updates = True

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


def cmd_simulate(args):
    """Play matches in-process and print a summary per match."""
    from .replication.loopback import run_loopback_match

    unfinished = 0
    for game in range(args.games):
        seed = None if args.seed is None else args.seed + game
        report = run_loopback_match(seed=seed, max_actions=args.max_actions)

        if args.json:
            print(json.dumps({"seed": seed, **report.to_dict()}))
            continue

        scores = [b.score for b in report.final_state.players]
        status = "finished" if report.finished else "capped"
        print(f"Game {game + 1} (seed {seed}): {status} after {report.rounds} round(s), "
              f"{report.actions_applied} actions, scores {scores}")
        if report.standings:
            print(f"  Winner: player {report.standings[0]}")
        if report.divergences:
            print(f"  Replicas diverged {report.divergences} time(s)")

        if not report.finished:
            unfinished += 1

    if unfinished:
        sys.exit(1)


if __name__ == "__main__":
    main()
