from __future__ import annotations

import argparse

from bookshelf.lifecycle import LifecycleSequencer


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="bookshelf", description="Bookshelf web service")
    parser.add_argument("--env", default=None, help="Environment tag; selects application.<env>.env (default: $APP_ENV or develop)")
    parser.add_argument("--config-dir", default=None, help="Directory holding application.<env>.env files (default: $CONFIG_DIR or .)")
    args = parser.parse_args(argv)

    return LifecycleSequencer(env=args.env, config_dir=args.config_dir).run()


if __name__ == "__main__":
    raise SystemExit(main())
