"""Load scraped showtimes from a JSON file and ingest them as one batch."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from showtally.errors import IngestError
from showtally.schemas.showtime import ShowtimeIn
from showtally.tasks.ingest_job import ingest_with_retry

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)

_showtime_list = TypeAdapter(list[ShowtimeIn])


def read_showtimes(path: Path) -> list[ShowtimeIn]:
    """Parse a JSON array of showtime records (camelCase or snake_case fields)."""
    return _showtime_list.validate_json(path.read_bytes())


async def load_showtimes(path: Path) -> bool:
    """Ingest the file's showtimes. Returns True if the batch was applied."""
    try:
        showtimes = read_showtimes(path)
    except ValidationError as e:
        logger.error(f"{path} is not a valid showtime batch:\n{e}")
        return False

    logger.info(f"Loaded {len(showtimes)} showtimes from {path}")
    try:
        result = await ingest_with_retry(showtimes)
    except IngestError as e:
        logger.error(f"Batch not applied: {e}")
        return False

    print(json.dumps(result.to_response().model_dump(), indent=2))
    return True


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Ingest a JSON file of scraped showtimes."
    )
    parser.add_argument("path", type=Path, help="JSON file containing an array of showtimes")
    args = parser.parse_args()

    ok = asyncio.run(load_showtimes(args.path))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
