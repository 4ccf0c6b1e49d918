#!/usr/bin/env python3
"""
CSV round-trip example.

This example serializes records to CSV, parses the payload back, and
re-serializes a projected view of the parsed records.

Usage:
    python examples/csv_roundtrip.py
"""

import asyncio

from recordpipe import Parsable, Serializable, record_map_stream
from recordpipe.telemetry import LogLevel, PipeLogger

ACCOUNTS = [
    {"Id": "001", "Name": "Acme, Inc.", "Active": True, "Owner": None},
    {"Id": "002", "Name": 'The "Globex" Corp', "Active": False, "Owner": "hank"},
    {"Id": "003", "Name": "Initech", "Active": True, "Owner": "bill"},
]


async def main() -> None:
    """Run the round-trip example."""
    PipeLogger.configure(level=LogLevel.DEBUG, format="text")

    # Records to bytes
    source = Serializable()
    data = source.stream("csv", {"null_value": "#N/A"})
    await source.write_all(ACCOUNTS)
    payload = b"".join(await data.collect())
    print(payload.decode())

    # Bytes back to records, projected and serialized again
    parsable = Parsable()
    sink = parsable.stream("csv", {"null_value": "#N/A"})
    parsable.on("record", lambda r: print(f"Parsed: {r}"))

    labels = Serializable(
        parsable.pipe(record_map_stream({"Label": "${Name} (${Owner})"}))
    )
    out = labels.stream("csv")

    await sink.write_all([payload])
    print(b"".join(await out.collect()).decode())


if __name__ == "__main__":
    asyncio.run(main())
