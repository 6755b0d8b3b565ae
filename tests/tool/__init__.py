"""Test helpers for flux-release tools."""

import contextlib
import io

from flux_release.tool.flux_release import main


def run_command(args: list[str]) -> str:
    """Run the command line tool and return its output."""
    output = io.StringIO()
    with contextlib.redirect_stdout(output):
        main(args)
    return output.getvalue()
