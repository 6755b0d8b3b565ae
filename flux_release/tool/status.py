"""Flux-release status action."""

import logging
import pathlib
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import Any, cast

from flux_release.release import read_releases

from .format import PrintFormatter, YamlFormatter


_LOGGER = logging.getLogger(__name__)


class StatusAction:
    """Print the recorded status of HelmReleases."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "status",
                help="Print the status of HelmRelease objects",
                description="Print the conditions and bookkeeping of HelmRelease objects in a yaml file.",
            ),
        )
        args.add_argument(
            "--path",
            help="Path to a yaml file with HelmRelease objects",
            type=pathlib.Path,
            required=True,
        )
        args.add_argument(
            "--output",
            "-o",
            choices=["table", "yaml"],
            default="table",
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        output: str = "table",
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        releases = await read_releases(path)
        _LOGGER.debug("Found %d HelmReleases in %s", len(releases), path)
        if output == "yaml":
            YamlFormatter().print(
                [
                    {
                        "name": release.name,
                        "namespace": release.namespace,
                        "status": release.status.to_dict(),
                    }
                    for release in releases
                ]
            )
            return

        results: list[dict[str, Any]] = []
        for release in releases:
            status = release.status
            results.append(
                {
                    "namespace": release.namespace,
                    "name": release.name,
                    "ready": release.ready_status,
                    "applied": status.last_applied_revision or "-",
                    "attempted": status.last_attempted_revision or "-",
                    "release": status.last_release_revision,
                    "failures": status.failures,
                }
            )
        if not results:
            print("no HelmReleases found")
            return
        PrintFormatter().print(results)
