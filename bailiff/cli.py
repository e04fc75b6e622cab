"""Command-line helper for validating Bailiff configuration files."""

from __future__ import annotations

import argparse
from pathlib import Path

import msgspec

from .config import load_config
from .errors import ConfigError


def main(argv: list[str] | None = None) -> int:
    """Validate a configuration file and print a summary.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when validation fails.

    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("config", type=Path, help="YAML configuration to validate")
    parser.add_argument(
        "--json-out",
        type=Path,
        default=None,
        help="Optional path to write the validated configuration as JSON",
    )
    args = parser.parse_args(argv)

    config_path: Path = args.config
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        print(f"Configuration check failed for {config_path}: {exc}")
        return 1

    if args.json_out:
        args.json_out.write_bytes(
            msgspec.json.encode({
                "listen_addr": config.listen_addr,
                "org": config.org,
                "repo": config.repo,
                "admin_teams": list(config.admin_teams),
                "trigger_pattern": config.trigger_regex.pattern,
                "status_name": config.status_name,
                "membership_refresh_interval_s": (
                    config.membership_refresh_interval_s
                ),
            })
        )

    print(
        f"config {config_path} is valid "
        f"(repo {config.repo_slug} / "
        f"{len(config.admin_teams)} admin teams / listening on {config.listen_addr})"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
