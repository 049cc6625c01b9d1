import argparse
import asyncio
import logging
import os
import sys
import traceback
from typing import List, Optional, Sequence, Tuple
from dotenv import load_dotenv

from vongform.application.renderer import ManifestRenderer
from vongform.application.umbrella_service import UmbrellaService
from vongform.config import Settings, resolve_settings
from vongform.domain.exceptions import ConfigurationError, InvalidMutation, VongformException
from vongform.domain.mutations import Mutation, parse_remove, parse_set
from vongform.infrastructure.consul_client import ConsulKVClient
from vongform.infrastructure.writer import ManifestWriter

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vongform",
        description="Manage data for a helm umbrella chart stored in consul. "
        "Update service versions and emit the chart.",
    )
    # --set and --rm share one destination so the queue keeps command-line order
    parser.add_argument(
        "--set",
        dest="mutations",
        action="append",
        type=lambda value: ("set", value),
        default=[],
        metavar="SERVICE=VERSION",
        help="set a service to a version; can be repeated: "
        "vongform --set sessions-2020=1.0.0 --set auth-2020=1.2.3",
    )
    parser.add_argument(
        "--rm",
        dest="mutations",
        action="append",
        type=lambda value: ("rm", value),
        metavar="SERVICE",
        help="remove a service from the chart; can be repeated",
    )
    parser.add_argument(
        "-o", "--output",
        help="output the umbrella chart to the given directory; "
        "checks VONGFORM_OUTPUT_DIR and falls back to ./chart",
    )
    parser.add_argument(
        "-r", "--repository",
        help="the fully-qualified url of the helm chart repository to use; "
        "defaults to VONGFORM_DEFAULT_REPOSITORY",
    )
    parser.add_argument("--prefix", help="consul key prefix of the registry; defaults to VONGFORM_PREFIX or umbrella")
    parser.add_argument("--consul", help="consul address; defaults to CONSUL_HTTP_ADDR or http://localhost:8500")
    parser.add_argument("--timeout", type=float, help="seconds allowed for each consul request")
    parser.add_argument("--dry-run", action="store_true", help="show the changes without writing anything")
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    return parser


def parse_mutations(raw: Sequence[Tuple[str, str]]) -> List[Mutation]:
    return [parse_set(value) if kind == "set" else parse_remove(value) for kind, value in raw]


def configure_logging(level: Optional[str]) -> None:
    logging.basicConfig(
        level=level or os.getenv("VONGFORM_LOG_LEVEL") or "INFO",
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


async def execute(settings: Settings, mutations: List[Mutation]) -> None:
    renderer = ManifestRenderer(settings.repository, settings.chart)
    writer = ManifestWriter(settings.output_dir)

    async with ConsulKVClient(
        base_url=settings.consul_url,
        token=settings.consul_token,
        timeout=settings.timeout,
    ) as store:
        service = UmbrellaService(
            store=store,
            renderer=renderer,
            writer=writer,
            prefix=settings.prefix,
            dry_run=settings.dry_run,
        )
        await service.sync(mutations)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    # Load environment variables from .env file
    load_dotenv()

    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        mutations = parse_mutations(args.mutations)
        settings = resolve_settings(
            output=args.output,
            repository=args.repository,
            prefix=args.prefix,
            consul_url=args.consul,
            timeout=args.timeout,
            dry_run=args.dry_run,
        )
    except (InvalidMutation, ConfigurationError) as e:
        logger.error(f"vongform error: {e}")
        return EXIT_USAGE

    try:
        await execute(settings, mutations)
    except VongformException as e:
        if logger.isEnabledFor(logging.DEBUG):
            traceback.print_exc(file=sys.stderr)
        logger.error(f"vongform error: {e}")
        return EXIT_FAILURE
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        return EXIT_FAILURE
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
