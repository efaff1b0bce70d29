"""
Main CLI entry point for hydropkg

Commands and short aliases:
- hydropkg install / hydropkg i
- hydropkg search / hydropkg s
- hydropkg remove / hydropkg erase / hydropkg e / hydropkg rm
- hydropkg list / hydropkg l
"""

import argparse
import logging
import sys
from pathlib import Path

from .. import __version__
from ..core.config import load_config
from ..core.errors import ManifestUnavailable
from ..core.operations import PackageOperations
from .commands import cmd_install, cmd_list, cmd_remove, cmd_search


class AliasedSubParsersAction(argparse._SubParsersAction):
    """Custom action to support command aliases in argparse."""

    def add_parser(self, name, **kwargs):
        aliases = kwargs.pop('aliases', [])
        parser = super().add_parser(name, **kwargs)

        for alias in aliases:
            self._name_parser_map[alias] = parser

        return parser


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all commands and aliases."""

    parser = argparse.ArgumentParser(
        prog='hydropkg',
        description='hydrosh package manager',
        epilog='Use "hydropkg <command> --help" for command-specific help.'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'hydropkg {__version__}'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )
    parser.add_argument(
        '--nocolor',
        action='store_true',
        help='Disable colored output'
    )
    parser.add_argument(
        '--mirror',
        help='Mirror base URL'
    )
    parser.add_argument(
        '--root',
        type=Path,
        help='Install root directory'
    )
    parser.add_argument(
        '--config-dir',
        type=Path,
        help='Directory holding the manifest and hydropkg.conf (default: ~/.hydropkg)'
    )

    parser.register('action', 'parsers', AliasedSubParsersAction)

    subparsers = parser.add_subparsers(
        dest='command',
        title='commands',
        metavar='<command>'
    )

    # =========================================================================
    # install / i
    # =========================================================================
    install_parser = subparsers.add_parser(
        'install', aliases=['i'],
        help='Install packages'
    )
    install_parser.add_argument(
        'packages', nargs='+',
        help='Package names to install'
    )
    install_parser.add_argument(
        '--no-staging',
        action='store_true',
        help='Extract straight into the install root (no rollback on failure)'
    )
    install_parser.add_argument(
        '--workers', '-j',
        type=int,
        help='Parallel downloads'
    )
    install_parser.add_argument(
        '--retries',
        type=int,
        help='Retries on network errors'
    )

    # =========================================================================
    # search / s
    # =========================================================================
    search_parser = subparsers.add_parser(
        'search', aliases=['s'],
        help='Search packages on the mirror'
    )
    search_parser.add_argument(
        'pattern',
        help='Substring to look for (case-sensitive)'
    )

    # =========================================================================
    # remove / erase / e / rm
    # =========================================================================
    remove_parser = subparsers.add_parser(
        'remove', aliases=['erase', 'e', 'rm'],
        help='Remove installed packages'
    )
    remove_parser.add_argument(
        'packages', nargs='+',
        help='Package names to remove'
    )

    # =========================================================================
    # list / l
    # =========================================================================
    subparsers.add_parser(
        'list', aliases=['l'],
        help='List installed packages'
    )

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(name)s - %(levelname)s - %(message)s',
            stream=sys.stderr
        )

    from . import colors
    colors.init(nocolor=args.nocolor)

    if not args.command:
        parser.print_help()
        return 1

    config = load_config(
        args.config_dir,
        mirror=args.mirror,
        install_root=args.root,
        max_workers=getattr(args, 'workers', None),
        retries=getattr(args, 'retries', None),
        staging=False if getattr(args, 'no_staging', False) else None,
    )
    ops = PackageOperations(config)

    try:
        if args.command in ('install', 'i'):
            return cmd_install(args, ops)

        elif args.command in ('search', 's'):
            return cmd_search(args, ops)

        elif args.command in ('remove', 'erase', 'e', 'rm'):
            return cmd_remove(args, ops)

        elif args.command in ('list', 'l'):
            return cmd_list(args, ops)

        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    except ManifestUnavailable as e:
        print(colors.error(f"Fatal: {e}"), file=sys.stderr)
        return 2

    except Exception as e:
        if args.verbose:
            import traceback
            traceback.print_exc()
        else:
            print(colors.error(f"Error: {e}"), file=sys.stderr)
        return 1


def entry():
    """Console script entry point."""
    sys.exit(main())


if __name__ == '__main__':
    entry()
