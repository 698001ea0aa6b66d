"""CLI entrypoint for location_finder."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from location_finder.logging_config import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    setup_logging()

    parser = argparse.ArgumentParser(prog="location-finder")
    parser.add_argument("--location-dataset-dir", default=None,
                        help="Directory holding countries.csv, states.csv and cities.csv")
    parser.add_argument("--alias-file", default=None, help="Place alias file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve")
    sub.add_parser("load")

    find_parser = sub.add_parser("find")
    find_parser.add_argument("--city", required=True)
    find_parser.add_argument("--state", default="")
    find_parser.add_argument("--country", required=True)

    map_parser = sub.add_parser("map")
    map_parser.add_argument("--locations-to-map", required=True)
    map_parser.add_argument("--org-locations-to-map", default=None)

    sort_parser = sub.add_parser("sort-aliases")
    sort_parser.add_argument("--input", default=None)
    sort_parser.add_argument("--output", default=None)

    args = parser.parse_args(argv)

    if args.command == "sort-aliases":
        return _sort_aliases(args.input or args.alias_file, args.output)

    from location_finder.matcher import configure

    if args.location_dataset_dir:
        logger.info("location_dataset_dir: %s", args.location_dataset_dir)
    configure(args.location_dataset_dir, args.alias_file)

    if args.command == "serve":
        _serve()
    elif args.command == "load":
        return _load()
    elif args.command == "find":
        _find_once(args.city, args.state, args.country)
    elif args.command == "map":
        _map(args.locations_to_map, args.org_locations_to_map)
    return 0


def _serve() -> None:
    import uvicorn

    from location_finder.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "location_finder.api:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


def _load() -> int:
    from location_finder.errors import LocationFinderError
    from location_finder.matcher import get_finder

    try:
        index = get_finder().load()
    except LocationFinderError as e:
        logger.error("Error loading location records: %s", e)
        return 1
    print(json.dumps(index.stats(), indent=2))
    return 0


def _find_once(city: str, state: str, country: str) -> None:
    from location_finder.matcher import find_location

    result = find_location(city, state, country)
    print(json.dumps(result.model_dump(mode="json"), indent=2))


def _map(locations_csv: str, org_locations_csv: str | None) -> None:
    from location_finder.mapper import map_locations
    from location_finder.matcher import get_finder

    report = map_locations(get_finder(), locations_csv, org_locations_csv)
    print(f"Mapping completed: {report.matched}/{report.total} locations matched "
          f"({report.full_matches} full, {report.partial_matches} partial)")


def _sort_aliases(input_file: str | None, output_file: str | None) -> int:
    from location_finder.aliases import sort_alias_file
    from location_finder.config import get_settings

    settings = get_settings().dataset
    written = sort_alias_file(input_file or settings.alias_file, output_file or settings.alias_sorted_file)
    print(f"Wrote {written} alias lines")
    return 0


if __name__ == "__main__":
    sys.exit(main())
