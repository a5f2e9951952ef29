#!/usr/bin/env python3
"""conjure-plugin CLI: Conjure generation, verification and IR publishing.

This is the installable CLI entrypoint (console_scripts).

Subcommands:
- conjure-plugin run             → Generate Conjure output for all configured projects
- conjure-plugin run --verify    → Check that on-disk output matches freshly generated output
- conjure-plugin publish         → Publish IR of publishable projects to Artifactory
- conjure-plugin about           → Print package identity info

Global flags (accepted before or after the subcommand):
- --project-dir  project root; relative locators and output dirs resolve against it
- --config       plugin configuration YAML
- --debug        verbose logging to stderr

Exit codes:
- 0: success
- 1: verify found drift
- 3: usage/configuration/acquisition/generation/publish error
"""

from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, metadata, version
from pathlib import Path

from conjureplugin.core.errors import ConjurePluginError, VerifyFailedError

ABOUT_REPO_URL = "https://github.com/palantir/godel-conjure-plugin"
DEFAULT_GENERATOR = "conjure-go"

PROG = "conjure-plugin"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_params(args: argparse.Namespace):
    from conjureplugin.config import read_config_from_file

    project_dir = Path(str(args.project_dir))
    if not project_dir.is_dir():
        raise ConjurePluginError(f"invalid project dir: {project_dir}")
    cfg = read_config_from_file(Path(str(args.config)))
    return project_dir, cfg.to_params(project_dir)


# ---------------------------------------------------------------------------
# run subcommand
# ---------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> int:
    from conjureplugin.commands.run import run
    from conjureplugin.generator import CommandGenerator

    tag = f"[{PROG} run]"
    try:
        project_dir, params = _load_params(args)
        run(
            params,
            verify=bool(args.verify),
            project_dir=project_dir,
            stdout=sys.stdout,
            generator=CommandGenerator(str(args.generator)),
        )
    except VerifyFailedError as e:
        print(f"{tag} FAIL: {e}", file=sys.stderr)
        print(f"{tag} Remediation: Do re-run `{PROG} run` without --verify and commit the regenerated files.", file=sys.stderr)
        return 1
    except ConjurePluginError as e:
        print(f"{tag} ERROR: {e}", file=sys.stderr)
        return 3

    if args.verify:
        print(f"{tag} PASS: {len(params)} project(s) match generated output", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# publish subcommand
# ---------------------------------------------------------------------------

def _publisher_flag_vals(args: argparse.Namespace) -> dict[str, object]:
    from conjureplugin.publisher import PUBLISHER_FLAGS

    # Only flags that were explicitly provided are passed through.
    flag_vals: dict[str, object] = {}
    for flag in PUBLISHER_FLAGS:
        val = getattr(args, flag.name.replace("-", "_"), None)
        if flag.is_bool:
            if val:
                flag_vals[flag.name] = True
        elif val is not None:
            flag_vals[flag.name] = val
    return flag_vals


def cmd_publish(args: argparse.Namespace) -> int:
    from conjureplugin.commands.publish import publish

    tag = f"[{PROG} publish]"
    try:
        project_dir, params = _load_params(args)
        uploaded = publish(
            params,
            project_dir=project_dir,
            flag_vals=_publisher_flag_vals(args),
            dry_run=bool(args.dry_run),
            stdout=sys.stdout,
        )
    except ConjurePluginError as e:
        print(f"{tag} ERROR: {e}", file=sys.stderr)
        return 3

    if not uploaded:
        print(f"{tag} nothing to publish", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# about subcommand
# ---------------------------------------------------------------------------

def cmd_about(_: argparse.Namespace) -> int:
    """Print package identity info (human-readable)."""

    try:
        pkg_version = version("conjure-plugin")
    except PackageNotFoundError:
        pkg_version = "0.0.0"

    pkg_name = PROG
    pkg_summary = ""
    try:
        meta = metadata("conjure-plugin")
        pkg_name = str(meta.get("Name") or pkg_name)
        pkg_summary = str(meta.get("Summary") or "")
    except PackageNotFoundError:
        pass

    print(f"{pkg_name} {pkg_version}")
    if pkg_summary:
        print(pkg_summary)
    print(f"Repo: {ABOUT_REPO_URL}")
    return 0


# ---------------------------------------------------------------------------
# Main CLI
# ---------------------------------------------------------------------------

def _add_global_flags(p: argparse.ArgumentParser, *, suppress_defaults: bool) -> None:
    # Subparsers suppress defaults so values given before the subcommand survive.
    default = argparse.SUPPRESS if suppress_defaults else None
    p.add_argument("--project-dir", default=default, help="Project root directory")
    p.add_argument("--config", default=default, help="Path to the plugin configuration YAML")
    p.add_argument(
        "--debug",
        action="store_true",
        default=argparse.SUPPRESS if suppress_defaults else False,
        help="Verbose logging to stderr",
    )


def main(argv: list[str] | None = None) -> int:
    from conjureplugin.publisher import PUBLISHER_FLAGS

    parser = argparse.ArgumentParser(
        prog=PROG,
        description="conjure-plugin: Conjure generation, verification and IR publishing",
    )
    _add_global_flags(parser, suppress_defaults=False)
    subparsers = parser.add_subparsers(dest="command", help="Subcommand")

    # about
    subparsers.add_parser("about", help="Print package identity info")

    # run
    p_run = subparsers.add_parser("run", help="Run Conjure generation based on project configuration")
    _add_global_flags(p_run, suppress_defaults=True)
    p_run.add_argument(
        "--verify",
        action="store_true",
        help="Verify that current project matches output of conjure",
    )
    p_run.add_argument(
        "--generator",
        default=DEFAULT_GENERATOR,
        help=f"Conjure generator executable (default: {DEFAULT_GENERATOR})",
    )
    p_run.set_defaults(func=cmd_run)

    # publish
    p_publish = subparsers.add_parser("publish", help="Publish Conjure IR")
    _add_global_flags(p_publish, suppress_defaults=True)
    p_publish.add_argument("--dry-run", action="store_true", help="Print the operations that would be performed")
    for flag in PUBLISHER_FLAGS:
        if flag.is_bool:
            p_publish.add_argument(f"--{flag.name}", action="store_true", help=flag.description)
        else:
            p_publish.add_argument(f"--{flag.name}", default=None, help=flag.description)
    p_publish.set_defaults(func=cmd_publish)

    args = parser.parse_args(argv)
    _configure_logging(bool(args.debug))

    if args.command == "about":
        return cmd_about(args)
    elif args.command in ("run", "publish"):
        missing = [f"--{n}" for n in ("project-dir", "config") if not getattr(args, n.replace("-", "_"), None)]
        if missing:
            print(f"[{PROG} {args.command}] ERROR: required flag(s) not set: {', '.join(missing)}", file=sys.stderr)
            return 3
        return int(args.func(args))
    else:
        parser.print_help()
        return 3


if __name__ == "__main__":
    sys.exit(main())
