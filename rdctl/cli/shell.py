"""CLI command for running a shell inside the managed VM."""

from __future__ import annotations

import scriptconfig as scfg

from ..launcher import shell_command
from ..util import run_cmd, shell_join
from ._common import _BaseCommand


class ShellCLI(_BaseCommand):
    """Run an interactive shell or a command in the managed VM.

    Examples:
        rdctl shell
        rdctl shell echo "An embedded ; ls thing"
    """

    command = scfg.Value(
        [],
        position=1,
        nargs='*',
        help='Command to run (default: an interactive shell).',
    )
    cd = scfg.Value('', help='Directory to run the command in (Windows only).')
    dry_run = scfg.Value(
        False, isflag=True, help='Print the shell command without running it.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        command = [str(c) for c in (args.command or [])]
        cmd, env = shell_command(command, cd=str(args.cd or ''))
        if args.dry_run:
            print(shell_join(cmd))
            return 0
        return run_cmd(cmd, check=False, capture=False, env=env).code
