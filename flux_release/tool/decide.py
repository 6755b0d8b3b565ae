"""Flux-release decide action."""

import logging
import pathlib
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import Any, cast

from flux_release.decision import Observation, decide
from flux_release.release import read_releases
from flux_release.release import values_checksum as checksum_values

from .format import PrintFormatter


_LOGGER = logging.getLogger(__name__)

NONE = "none"


class DecideAction:
    """Print the actions each HelmRelease needs next."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "decide",
                help="Decide the next Helm actions of HelmRelease objects",
                description=(
                    "Print the Helm actions that HelmRelease objects in a yaml "
                    "file need given the observed chart and release revisions."
                ),
            ),
        )
        args.add_argument(
            "--path",
            help="Path to a yaml file with HelmRelease objects",
            type=pathlib.Path,
            required=True,
        )
        args.add_argument(
            "--revision",
            help="Revision of the chart artifact",
            required=True,
        )
        args.add_argument(
            "--release-revision",
            help="Revision of the current Helm release, 0 when not installed",
            type=int,
            default=0,
        )
        args.add_argument(
            "--values-checksum",
            help="Checksum of the composed values, defaults to the checksum of spec.values",
            default=None,
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        revision: str,
        release_revision: int = 0,
        values_checksum: str | None = None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        results: list[dict[str, Any]] = []
        for release in await read_releases(path):
            observation = Observation(
                revision=revision,
                release_revision=release_revision,
                values_checksum=(
                    values_checksum
                    if values_checksum is not None
                    else checksum_values(release.values)
                ),
            )
            decision = decide(release, observation)
            results.append(
                {
                    "namespace": release.namespace,
                    "name": release.name,
                    "actions": ",".join(decision.actions) or NONE,
                }
            )
        if not results:
            print("no HelmReleases found")
            return
        PrintFormatter().print(results)
