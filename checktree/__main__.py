from __future__ import annotations

import argparse
import sys


def _parse_mode(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(add_help=False)
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--cli", action="store_true")
    mode.add_argument("--gui", action="store_true")
    parser.add_argument("--version", action="store_true")
    return parser.parse_known_args(argv)[0]


def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    mode = _parse_mode(argv)
    if mode.version:
        from checktree import __version__

        print(f"checktree {__version__}")
        return

    if mode.cli:
        from checktree.cli import main as cli_main

        raise SystemExit(cli_main(argv))

    # The Qt window is only imported when asked for, so the CLI runs headless.
    from checktree.main import main as gui_main

    gui_main()


if __name__ == "__main__":
    main()
