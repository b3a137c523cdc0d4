"""
Boardflow CLI - Command-line interface for the engine.

Usage:
    boardflow serve [--host H] [--port P]      Run the HTTP/WebSocket API
    boardflow demo [--game NAME] [--seed S]    Play a random game in the terminal
"""

import argparse
import logging
import random
import sys

from .config import load_settings
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Main CLI entry point."""
    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="Boardflow - Turn-based game engine",
        prog="boardflow",
    )
    parser.add_argument(
        "--log-level", default=settings.log_level, help="Logging level (default: %(default)s)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=settings.host, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=settings.port, help="Port")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Play a random game")
    demo_parser.add_argument("--game", default="tic-tac-toe", help="Registered game name")
    demo_parser.add_argument(
        "--players", type=int, default=settings.default_num_players, help="Number of players"
    )
    demo_parser.add_argument("--seed", type=int, default=None, help="Seed for move choice")

    args = parser.parse_args()
    setup_logging(args.log_level)

    if args.command == "serve":
        cmd_serve(args, settings)
    elif args.command == "demo":
        cmd_demo(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args, settings):
    """Run the API with uvicorn."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install uvicorn")
        sys.exit(1)

    from .api import create_app

    app = create_app(settings)
    logger.info("Serving on %s:%d (%s)", args.host, args.port, settings.env)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


def cmd_demo(args):
    """Play random legal-looking moves until the game ends."""
    from .engine_core import Action, GameReducer
    from .games import GAMES

    game = GAMES.get(args.game)
    if game is None:
        print(f"Error: unknown game '{args.game}'. Available: {', '.join(sorted(GAMES))}")
        sys.exit(1)

    rng = random.Random(args.seed)
    reducer = GameReducer(game, num_players=args.players)
    state = reducer(None, Action.init())

    print(f"Playing {game.name} with {args.players} players")
    for _ in range(1000):
        if state.ctx.is_over:
            break
        cells = state.G.get("cells", []) if isinstance(state.G, dict) else []
        free = [i for i, cell in enumerate(cells) if cell is None]
        if not free:
            break
        cell = rng.choice(free)
        player = state.ctx.current_player
        state = reducer(state, Action.make_move("click_cell", [cell], player_id=player))
        print(f"  turn {state.ctx.turn:>2}: player {player} takes cell {cell}")

    if isinstance(state.G, dict) and "cells" in state.G:
        cells = [c if c is not None else "." for c in state.G["cells"]]
        for row in range(3):
            print("    " + " ".join(cells[row * 3:row * 3 + 3]))
    print(f"Result: {state.ctx.gameover}")


if __name__ == "__main__":
    main()
