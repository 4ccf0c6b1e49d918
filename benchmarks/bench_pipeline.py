#!/usr/bin/env python3
"""
Pipeline performance benchmarks.

Measures throughput and latency of record stages and codecs.
"""

import asyncio
import time
from typing import Any

from recordpipe import Parsable, RecordStream, Serializable, record_map_stream


def generate_records(count: int) -> list[dict[str, Any]]:
    """Generate mock account records for benchmarking."""
    return [
        {
            "Id": f"{i:06d}",
            "Name": f"Account, {i}",
            "Active": i % 2 == 0,
            "Score": i,
            "Notes": None,
        }
        for i in range(count)
    ]


async def benchmark_map_chain(iterations: int = 1000) -> dict[str, Any]:
    """Benchmark map/filter stage throughput."""
    records = generate_records(iterations)
    source = RecordStream()
    tail = source.map(lambda r: {**r, "Score": r["Score"] * 2}).filter(
        lambda r: r["Active"]
    )

    start = time.perf_counter()
    _, selected = await asyncio.gather(source.write_all(records), tail.collect())
    elapsed = time.perf_counter() - start

    return {
        "name": "MapFilterChain",
        "iterations": iterations,
        "records_out": len(selected),
        "elapsed_seconds": elapsed,
        "throughput_rps": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_template(iterations: int = 1000) -> dict[str, Any]:
    """Benchmark template projection throughput."""
    records = generate_records(iterations)
    source = RecordStream()
    projected = source.pipe(
        record_map_stream({"Label": "${Name} (${Score})", "Score": "${Score}"})
    )

    start = time.perf_counter()
    _, mapped = await asyncio.gather(source.write_all(records), projected.collect())
    elapsed = time.perf_counter() - start

    return {
        "name": "TemplateProjection",
        "iterations": iterations,
        "records_out": len(mapped),
        "elapsed_seconds": elapsed,
        "throughput_rps": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_csv_serialize(iterations: int = 1000) -> dict[str, Any]:
    """Benchmark CSV serializer throughput."""
    records = generate_records(iterations)
    serializable = Serializable()
    data = serializable.stream("csv")

    start = time.perf_counter()
    _, chunks = await asyncio.gather(serializable.write_all(records), data.collect())
    elapsed = time.perf_counter() - start

    return {
        "name": "CsvSerializer",
        "iterations": iterations,
        "bytes_out": sum(len(c) for c in chunks),
        "elapsed_seconds": elapsed,
        "throughput_rps": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_csv_round_trip(iterations: int = 1000) -> dict[str, Any]:
    """Benchmark serialize then parse."""
    records = generate_records(iterations)

    start = time.perf_counter()
    serializable = Serializable()
    data = serializable.stream("csv")
    _, chunks = await asyncio.gather(serializable.write_all(records), data.collect())

    parsable = Parsable()
    sink = parsable.stream("csv")
    _, parsed = await asyncio.gather(sink.write_all(chunks), parsable.collect())
    elapsed = time.perf_counter() - start

    return {
        "name": "CsvRoundTrip",
        "iterations": iterations,
        "records_out": len(parsed),
        "elapsed_seconds": elapsed,
        "throughput_rps": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Pipeline Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_map_chain,
        benchmark_template,
        benchmark_csv_serialize,
        benchmark_csv_round_trip,
    ]

    for bench in benchmarks:
        result = await bench()
        print(f"{result['name']}:")
        print(f"  Iterations: {result['iterations']}")
        print(f"  Elapsed: {result['elapsed_seconds']:.4f}s")
        print(f"  Throughput: {result['throughput_rps']:.0f} records/sec")
        if "bytes_out" in result:
            print(f"  Output: {result['bytes_out']} bytes")
        print(f"  Latency: {result['latency_us']:.2f} µs/item")
        print()


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
