"""Tests for stages, record streams and the map/filter combinators."""

import asyncio

import pytest

from recordpipe.errors import StageError, StreamStateError
from recordpipe.stream import (
    FilterStage,
    MapStage,
    PassThrough,
    RecordStream,
    Stage,
    filter_stream,
    map_stream,
)
from recordpipe.types import StreamMode


class UpperCaseStage(Stage):
    """Stage used to check subclass hooks."""

    async def transform(self, chunk: str) -> None:
        await self.push(chunk.upper())

    async def flush(self) -> None:
        await self.push("<EOF>")


class TestStage:
    """Tests for the base stage."""

    @pytest.mark.asyncio
    async def test_passthrough_preserves_order(self) -> None:
        """Test items come out in write order."""
        stage = PassThrough()
        writer = asyncio.create_task(stage.write_all(range(1, 51)))

        items = await stage.collect()
        await writer

        assert items == list(range(1, 51))
        assert stage.ended

    @pytest.mark.asyncio
    async def test_transform_and_flush_hooks(self) -> None:
        """Test subclass transform and flush output."""
        stage = UpperCaseStage()
        await stage.write_all(["a", "b"])

        assert await stage.collect() == ["A", "B", "<EOF>"]

    @pytest.mark.asyncio
    async def test_backpressure_suspends_writer(self) -> None:
        """Test a full buffer suspends the producer until drained."""
        stage = PassThrough(high_water_mark=2)
        writer = asyncio.create_task(stage.write_all([1, 2, 3, 4, 5]))

        await asyncio.sleep(0.01)
        assert stage.buffered == 2
        assert not writer.done()

        items = await stage.collect()
        await writer
        assert items == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_write_after_end_raises(self) -> None:
        """Test writing to an ended stage."""
        stage = PassThrough()
        await stage.end()

        with pytest.raises(StreamStateError):
            await stage.write("late")

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self) -> None:
        """Test ending twice produces a single end-of-output."""
        stage = PassThrough()
        await stage.write(1)
        await stage.end()
        await stage.end()

        assert await stage.collect() == [1]
        assert await stage.read() is None

    @pytest.mark.asyncio
    async def test_object_stage_rejects_none(self) -> None:
        """Test None is reserved for end-of-output."""
        with pytest.raises(StreamStateError):
            await PassThrough().write(None)

    @pytest.mark.asyncio
    async def test_byte_stage_coerces_text(self) -> None:
        """Test byte-mode stages accept bytes-like and text chunks."""
        stage = PassThrough(mode=StreamMode.BYTES)
        await stage.write("héllo")
        await stage.write(bytearray(b"!"))
        await stage.end()

        assert await stage.collect() == ["héllo".encode(), b"!"]

    @pytest.mark.asyncio
    async def test_byte_stage_rejects_objects(self) -> None:
        """Test byte-mode stages reject records."""
        stage = PassThrough(mode=StreamMode.BYTES)

        with pytest.raises(StreamStateError):
            await stage.write({"Id": "1"})

    @pytest.mark.asyncio
    async def test_events(self) -> None:
        """Test data, finish and end events."""
        stage = PassThrough()
        events: list[str] = []
        stage.on("data", lambda item: events.append(f"data:{item}"))
        stage.on("finish", lambda: events.append("finish"))
        stage.on("end", lambda: events.append("end"))

        await stage.write_all(["x"])
        await stage.collect()

        assert events == ["finish", "data:x", "end"]

    @pytest.mark.asyncio
    async def test_off_removes_listener(self) -> None:
        """Test listener removal."""
        stage = PassThrough()
        seen: list[object] = []
        stage.on("data", seen.append)
        stage.off("data", seen.append)

        await stage.write_all([1])
        await stage.collect()

        assert seen == []
        assert stage.listener_count("data") == 0

    @pytest.mark.asyncio
    async def test_piped_stage_cannot_be_iterated(self) -> None:
        """Test reading a piped stage directly is rejected."""
        source = PassThrough()
        source.pipe(PassThrough())

        with pytest.raises(StreamStateError):
            source.__aiter__()

    @pytest.mark.asyncio
    async def test_pipe_into_self_rejected(self) -> None:
        """Test a stage cannot feed itself."""
        stage = PassThrough()

        with pytest.raises(StreamStateError):
            stage.pipe(stage)

    def test_pipe_requires_running_loop(self) -> None:
        """Test pipe() outside an event loop fails fast."""
        source = PassThrough()

        with pytest.raises(StreamStateError):
            source.pipe(PassThrough())
        assert source.destinations == []

    @pytest.mark.asyncio
    async def test_pipe_to_multiple_destinations(self) -> None:
        """Test every destination receives every item."""
        source = PassThrough()
        left = source.pipe(PassThrough())
        right = source.pipe(PassThrough())

        await source.write_all(["a", "b"])

        assert await left.collect() == ["a", "b"]
        assert await right.collect() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_set_mode_after_write_rejected(self) -> None:
        """Test mode is fixed once data has flowed."""
        stage = PassThrough()
        await stage.write("x")

        with pytest.raises(StreamStateError):
            stage.set_mode(StreamMode.BYTES)


class TestRecordStream:
    """Tests for RecordStream."""

    @pytest.mark.asyncio
    async def test_emits_record_events(self, accounts) -> None:
        """Test each record fires a record event and is forwarded."""
        stream = RecordStream()
        seen: list[dict] = []
        stream.on("record", seen.append)

        await stream.write_all(accounts)

        assert await stream.collect() == accounts
        assert seen == accounts

    @pytest.mark.asyncio
    async def test_map(self, accounts) -> None:
        """Test map forwards fn(record)."""
        source = RecordStream()
        mapped = source.map(lambda r: {"Id": r["Id"], "Name": r["Name"].upper()})
        assert isinstance(mapped, MapStage)

        await source.write_all(accounts)

        assert await mapped.collect() == [
            {"Id": "001", "Name": "ACME"},
            {"Id": "002", "Name": "GLOBEX"},
            {"Id": "003", "Name": "INITECH"},
        ]

    @pytest.mark.asyncio
    async def test_map_falsy_result_keeps_record(self, accounts) -> None:
        """Test a mapper returning nothing forwards the original record."""
        source = RecordStream()

        def touch(record: dict) -> dict | None:
            if record["Id"] == "002":
                return {"Id": "002", "Name": "Changed"}
            return None

        mapped = source.map(touch)
        await source.write_all(accounts)

        result = await mapped.collect()
        assert len(result) == 3
        assert result[0] == accounts[0]
        assert result[1] == {"Id": "002", "Name": "Changed"}
        assert result[2] == accounts[2]

    @pytest.mark.asyncio
    async def test_async_map_function(self, accounts) -> None:
        """Test coroutine mappers are awaited."""
        source = RecordStream()

        async def tag(record: dict) -> dict:
            await asyncio.sleep(0)
            return {**record, "Tagged": True}

        mapped = source.map(tag)
        await source.write_all(accounts)

        assert all(r["Tagged"] for r in await mapped.collect())

    @pytest.mark.asyncio
    async def test_filter(self, accounts) -> None:
        """Test filter keeps the matching subsequence in order."""
        source = RecordStream()
        kept = source.filter(lambda r: r["Id"] != "002")
        assert isinstance(kept, FilterStage)

        await source.write_all(accounts)

        assert await kept.collect() == [accounts[0], accounts[2]]

    @pytest.mark.asyncio
    async def test_chain_preserves_order_under_backpressure(self) -> None:
        """Test a long chain keeps FIFO order with small buffers."""
        records = [{"Id": str(i), "n": i} for i in range(200)]
        source = RecordStream(high_water_mark=1)
        tail = source.map(lambda r: {**r, "n": r["n"] * 2}).filter(
            lambda r: r["n"] % 3 == 0
        )
        writer = asyncio.create_task(source.write_all(records))

        result = await tail.collect()
        await writer

        assert [r["n"] for r in result] == [
            i * 2 for i in range(200) if (i * 2) % 3 == 0
        ]

    @pytest.mark.asyncio
    async def test_record_event_per_stage(self, accounts) -> None:
        """Test each stage fires record events for what passes through it."""
        source = RecordStream()
        kept = source.filter(lambda r: r["Industry"] == "Energy")
        source_seen: list[dict] = []
        kept_seen: list[dict] = []
        source.on("record", source_seen.append)
        kept.on("record", kept_seen.append)

        await source.write_all(accounts)
        await kept.collect()

        assert source_seen == accounts
        assert kept_seen == [accounts[1]]

    @pytest.mark.asyncio
    async def test_mapper_exception_fails_stage(self, accounts) -> None:
        """Test user exceptions become a StageError on the stage."""
        source = RecordStream()

        def explode(record: dict) -> dict:
            if record["Id"] == "002":
                raise ValueError("bad record")
            return record

        mapped = source.map(explode)
        errors: list[BaseException] = []
        mapped.on("error", errors.append)
        writer = asyncio.create_task(source.write_all(accounts))

        with pytest.raises(StageError) as exc_info:
            await mapped.collect()
        await writer

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert exc_info.value.stage == mapped.name
        assert errors == [exc_info.value]
        assert mapped.failed

    @pytest.mark.asyncio
    async def test_failure_propagates_downstream(self, accounts) -> None:
        """Test a failure reaches stages piped after the failing one."""
        source = RecordStream()
        tail = source.filter(lambda r: r["missing"]).map(lambda r: r)
        writer = asyncio.create_task(source.write_all(accounts))

        with pytest.raises(StageError):
            await tail.collect()
        await writer

    @pytest.mark.asyncio
    @pytest.mark.parametrize("high_water_mark", [1, 16])
    async def test_failed_destination_releases_writer(self, high_water_mark: int) -> None:
        """Test a producer suspended on a full buffer is released by a failure."""
        source = RecordStream(high_water_mark=high_water_mark)

        def explode(record: dict) -> dict:
            if record["Id"] == "2":
                raise ValueError("bad record")
            return record

        mapped = source.map(explode)
        records = [{"Id": str(i)} for i in range(100)]
        writer = asyncio.create_task(source.write_all(records))

        with pytest.raises(StageError):
            await mapped.collect()
        with pytest.raises(StreamStateError):
            await asyncio.wait_for(writer, timeout=1)

        assert source.failed
        assert source.error is mapped.error
        assert source.destinations == []

    @pytest.mark.asyncio
    async def test_failure_releases_writer_through_chain(self) -> None:
        """Test a failure at the end of a chain reaches the first stage."""
        source = RecordStream(high_water_mark=2)
        tail = source.map(lambda r: r).map(lambda r: r["missing"])
        writer = asyncio.create_task(source.write_all({"Id": str(i)} for i in range(50)))

        with pytest.raises(StageError):
            await tail.collect()
        with pytest.raises(StreamStateError):
            await asyncio.wait_for(writer, timeout=1)

        assert source.failed

    @pytest.mark.asyncio
    async def test_stream_serializes_chain(self, accounts) -> None:
        """Test a derived stage can be serialized directly."""
        source = RecordStream()
        data = source.filter(lambda r: r["Id"] != "002").stream("csv")

        await source.write_all(accounts)

        assert b"".join(await data.collect()) == (
            b"Id,Name,Industry\n001,Acme,Manufacturing\n003,Initech,Software\n"
        )

    @pytest.mark.asyncio
    async def test_stream_is_memoized(self) -> None:
        """Test repeated stream() calls return the same byte stream."""
        source = RecordStream()

        assert source.stream("csv") is source.stream("raw")

    @pytest.mark.asyncio
    async def test_factories(self) -> None:
        """Test standalone map/filter stage factories."""
        doubled = map_stream(lambda r: {"v": r["v"] * 2})
        positive = filter_stream(lambda r: r["v"] > 0)
        doubled.pipe(positive)

        await doubled.write_all([{"v": -1}, {"v": 2}])

        assert await positive.collect() == [{"v": 4}]
