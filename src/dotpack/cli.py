from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

import structlog

from dotpack.bundler import bundle
from dotpack.config import Settings
from dotpack.errors import RegistryError
from dotpack.logs import configure_logging
from dotpack.scanner import fetch_known_packages, render_config, scan
from dotpack.state import open_registry

log = structlog.get_logger()


def _write(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, "utf-8")
    else:
        sys.stdout.write(text)


async def _known_packages(settings: Settings) -> dict[str, Any]:
    async with open_registry(settings) as state:
        return await fetch_known_packages(state.fetcher, settings.registry.known_packages_url)


async def _load(settings: Settings, name: str) -> Any:
    async with open_registry(settings) as state:
        return await state.registry.get(name)


def cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    known = asyncio.run(_known_packages(settings)) if args.registry else None
    configurations = scan(args.files, known=known)
    _write(render_config(configurations), args.output)
    return 0


def cmd_bundle(args: argparse.Namespace, settings: Settings) -> int:
    _write(bundle(args.files), args.output)
    return 0


def cmd_load(args: argparse.Namespace, settings: Settings) -> int:
    if args.root:
        settings.registry.root_dir = args.root
    value = asyncio.run(_load(settings, args.name))
    print(repr(value))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dotpack")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("scan", help="Generate package.config() for the packages in FILES")
    sp.add_argument("files", nargs="+")
    sp.add_argument(
        "-r", "--registry", action="store_true", help="Merge the published known-packages map"
    )
    sp.add_argument("-o", "--output")
    sp.set_defaults(func=cmd_scan)

    sp = sub.add_parser("bundle", help="Concatenate FILES into one stand-alone script")
    sp.add_argument("files", nargs="+")
    sp.add_argument("-o", "--output")
    sp.set_defaults(func=cmd_bundle)

    sp = sub.add_parser("load", help="Load a package and print its value")
    sp.add_argument("name")
    sp.add_argument("--root", help="Directory package paths are derived under")
    sp.set_defaults(func=cmd_load)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings()
    configure_logging(settings.logging)
    try:
        return int(args.func(args, settings))
    except RegistryError as exc:
        log.error("command_failed", command=args.cmd, code=str(exc.code))
        print(exc.message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
