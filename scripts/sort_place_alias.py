from __future__ import annotations

import argparse

from location_finder.aliases import sort_alias_file
from location_finder.config import get_settings


def main() -> None:
    settings = get_settings().dataset
    parser = argparse.ArgumentParser(description="Sort the place alias file by country, state, city.")
    parser.add_argument("--input", default=settings.alias_file)
    parser.add_argument("--output", default=settings.alias_sorted_file)
    args = parser.parse_args()

    written = sort_alias_file(args.input, args.output)
    print(f"Wrote {written} sorted alias lines to {args.output}")


if __name__ == "__main__":
    main()
