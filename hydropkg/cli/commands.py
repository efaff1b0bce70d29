"""CLI command handlers.

Each handler takes the parsed args and a PackageOperations instance,
prints results and returns the process exit code.
"""

import sys
from typing import TYPE_CHECKING, Iterable

from ..core.errors import HydropkgError
from . import colors

if TYPE_CHECKING:
    from ..core.operations import BatchResult, PackageOperations


def _print_packages(names: Iterable[str]):
    for name in sorted(names):
        print(f"  {name}")


def _report(batch: 'BatchResult', verb: str, paint) -> int:
    """Print a per-package summary; non-zero if any package failed."""
    for result in batch.results:
        if result.success:
            print(f"Package '{paint(result.name)}' {verb} {colors.success('successfully')}")
            continue

        print(colors.error(f"Error: {result.error}"), file=sys.stderr)
        if result.not_found:
            if result.suggestions:
                print(colors.warning("Similar packages:"))
                _print_packages(result.suggestions)
            else:
                print(colors.dim(f"No packages found matching '{result.name}'"))

    failed = batch.failed
    if failed and len(batch.results) > 1:
        print(colors.error(f"{len(failed)}/{len(batch.results)} package(s) failed: "
                           f"{', '.join(r.name for r in failed)}"), file=sys.stderr)
    return 0 if batch.success else 1


def cmd_install(args, ops: 'PackageOperations') -> int:
    """Handle install command."""
    print(colors.info(f"Installing into {ops.config.install_root}"))
    batch = ops.install_many(args.packages)
    return _report(batch, 'installed', colors.pkg_install)


def cmd_remove(args, ops: 'PackageOperations') -> int:
    """Handle remove command."""
    batch = ops.remove_many(args.packages)
    return _report(batch, 'removed', colors.pkg_remove)


def cmd_search(args, ops: 'PackageOperations') -> int:
    """Handle search command."""
    try:
        packages = ops.search(args.pattern)
    except HydropkgError as e:
        print(colors.error(f"Error searching for package: {e}"), file=sys.stderr)
        return 1

    if not packages:
        print(f"No packages found for '{args.pattern}'")
        return 0

    print("Found the following packages:")
    _print_packages(packages)
    return 0


def cmd_list(args, ops: 'PackageOperations') -> int:
    """Handle list command."""
    installed = ops.list_installed()
    if not installed:
        print(colors.dim("No packages installed"))
        return 0

    print(f"{colors.bold(str(len(installed)))} installed package(s):")
    _print_packages(installed)
    return 0
