#!/usr/bin/env python3
"""
Main Entry Point for repman

    repman add -r REPO -a foo -a bar      build AUR packages and add them
    repman update -r REPO --all           rebuild packages with AUR updates
    repman rm -r REPO foo                 remove a package
    repman ls -r REPO                     list the packages of a repository
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from repman import __version__
from repman.common import prompt
from repman.common.config_loader import ConfigLoader
from repman.common.errors import RepmanError, format_error_chain
from repman.common.logging_utils import setup_logging
from repman.repo.repository import Repository

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repman",
        description="Manage custom Arch Linux package repositories"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Verbose logging, including executed commands")
    parser.add_argument("--log-file", type=Path, help="Additionally write the log to this file")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    def repo_command(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("-r", "--repo", required=True, help="Name of the repository")
        return sub

    def build_flags(sub: argparse.ArgumentParser):
        sub.add_argument("-c", "--clean", action="store_true", help="Remove the chroot after building")
        sub.add_argument("-A", "--ignorearch", action="store_true", help="Ignore the arch field of PKGBUILDs")
        sub.add_argument("-n", "--nochroot", action="store_true", help="Build on the host instead of in a chroot")

    add = repo_command("add", "Build packages from AUR or local PKGBUILDs and add them")
    add.add_argument("-a", "--aur", dest="aur_names", action="append", default=[], metavar="NAME",
                     help="AUR package to add (repeatable)")
    add.add_argument("-d", "--dir", dest="pkgbuild_dirs", action="append", default=[], type=Path, metavar="DIR",
                     help="Directory containing a PKGBUILD (repeatable)")
    build_flags(add)
    add.add_argument("-s", "--sign", action="store_true", help="Sign the packages")

    repo_command("cleanup", "Make DB, package files and signatures consistent")

    clear = repo_command("clear", "Remove the local cache and/or the chroot of a repository")
    clear.add_argument("--cache", action="store_true", help="Remove the local copy of a remote repository")
    clear.add_argument("--chroot", action="store_true", help="Remove the chroot")

    repo_command("ls", "List the packages of a repository")
    commands.add_parser("lsrepos", help="List the configured repositories")
    repo_command("mkchroot", "Create the chroot of a repository")

    rm = repo_command("rm", "Remove packages from a repository")
    rm.add_argument("--noconfirm", action="store_true", help="Do not ask before removing needed packages")
    rm.add_argument("names", nargs="+", metavar="NAME")

    sign = repo_command("sign", "Sign packages")
    sign.add_argument("--all", action="store_true", help="Sign all packages of the repository")
    sign.add_argument("names", nargs="*", metavar="NAME")

    update = repo_command("update", "Rebuild packages that have newer versions in AUR")
    build_flags(update)
    update.add_argument("-f", "--force-no-version", action="store_true",
                        help="Rebuild VCS packages (foo-git, ...) regardless of their versions")
    update.add_argument("--noconfirm", action="store_true", help="Do not ask before building")
    update.add_argument("--all", action="store_true", help="Check all packages of the repository")
    update.add_argument("names", nargs="*", metavar="NAME")

    return parser


def validate_args(args: argparse.Namespace) -> Optional[str]:
    """Error message for invalid flag combinations, None if they are fine"""
    if getattr(args, "nochroot", False) and getattr(args, "clean", False):
        return "--nochroot and --clean cannot be combined: without chroot there is nothing to clean"
    if getattr(args, "all", False) and getattr(args, "names", None):
        return "--all and package names cannot be combined"
    if args.command == "add" and not args.aur_names and not args.pkgbuild_dirs:
        return "add needs at least one AUR package (-a) or PKGBUILD directory (-d)"
    if args.command == "clear" and not args.cache and not args.chroot:
        return "clear needs --cache and/or --chroot"
    return None


def _selected_names(args: argparse.Namespace) -> Optional[List[str]]:
    """None selects all packages"""
    return None if args.all else list(args.names)


def execute(args: argparse.Namespace, loader: Optional[ConfigLoader] = None) -> int:
    loader = loader or ConfigLoader()

    if args.command == "lsrepos":
        for name in loader.repo_names():
            print(name)
        return 0

    # sign/update without --all and without names: nothing selected
    if args.command in ("sign", "update") and not args.all and not args.names:
        logger.info("No packages selected (use --all or give package names)")
        return 0

    repo = Repository.from_config(args.repo, loader)

    if args.command == "add":
        repo.add(
            aur_names=args.aur_names,
            pkgbuild_dirs=args.pkgbuild_dirs,
            no_chroot=args.nochroot,
            ignore_arch=args.ignorearch,
            clean_chroot=args.clean,
            sign=args.sign
        )
    elif args.command == "cleanup":
        repo.clean_up()
    elif args.command == "clear":
        if args.cache:
            repo.clear_cache()
        if args.chroot:
            repo.remove_chroot()
    elif args.command == "ls":
        print(repo.list_packages().format())
    elif args.command == "mkchroot":
        repo.make_chroot(confirm=prompt.confirm)
    elif args.command == "rm":
        repo.remove(args.names, no_confirm=args.noconfirm)
    elif args.command == "sign":
        repo.sign(_selected_names(args))
    elif args.command == "update":
        repo.update(
            names=_selected_names(args),
            no_chroot=args.nochroot,
            ignore_arch=args.ignorearch,
            force_no_version=args.force_no_version,
            clean_chroot=args.clean,
            no_confirm=args.noconfirm
        )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug, args.log_file)

    error = validate_args(args)
    if error:
        logger.error(f"❌ {error}")
        return 1

    try:
        return execute(args)
    except RepmanError as e:
        logger.error(f"❌ {format_error_chain(e)}")
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
