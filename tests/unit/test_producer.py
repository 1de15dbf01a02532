"""Tests for ProducerBridge — parsing, restarts, backoff, tee and shutdown.

Processes come from a ScriptedLauncher and time from a FakeClock, so the
restart schedule is observed through the sleeps the bridge requested.
"""

from __future__ import annotations

import asyncio

import pytest

from casedeck.bridge.backoff import RestartBackoff
from casedeck.bridge.producer import BridgeState, ProducerBridge

COMMAND = ["producer", "--stdout"]


def make_bridge(launcher, clock, **kwargs) -> ProducerBridge:
    return ProducerBridge(
        COMMAND,
        backoff=kwargs.pop("backoff", RestartBackoff(1.0, 30.0)),
        clock=clock,
        launcher=launcher,
        **kwargs,
    )


class TestConstruction:
    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            ProducerBridge([])

    def test_initial_state(self, fake_clock, make_launcher):
        bridge = make_bridge(make_launcher(), fake_clock)
        assert bridge.state is BridgeState.IDLE
        assert bridge.command == COMMAND
        assert bridge.launch_count == 0
        assert bridge.restart_delay == 1.0
        assert not bridge.restart_pending


class TestEvents:
    def test_parsed_lines_reach_subscribers_in_order(
        self, fake_clock, make_launcher, case_line, eventually
    ):
        launcher = make_launcher({"lines": [case_line("A"), case_line("B"), case_line("C")]})
        bridge = make_bridge(launcher, fake_clock)
        received: list[str] = []
        bridge.subscribe(lambda snapshot: received.append(snapshot.case_id))

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.events_emitted == 3)
            await bridge.stop()

        asyncio.run(_run())
        assert received == ["A", "B", "C"]
        assert launcher.commands == [COMMAND]

    def test_malformed_lines_are_counted_and_dropped(
        self, fake_clock, make_launcher, case_line, eventually
    ):
        lines = [
            case_line("A"),
            b"not json at all\n",
            b"\n",
            b'{"messageName": "Update"}\n',
            case_line("B"),
            b"[1, 2]\n",
        ]
        launcher = make_launcher({"lines": lines})
        bridge = make_bridge(launcher, fake_clock)
        received: list[str] = []
        bridge.subscribe(lambda snapshot: received.append(snapshot.case_id))

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.parse_failures == 3)
            await bridge.stop()

        asyncio.run(_run())
        assert received == ["A", "B"]
        assert bridge.events_emitted == 2
        assert bridge.parse_failures == 3

    def test_oversized_line_is_a_parse_failure(
        self, fake_clock, make_launcher, case_line, eventually
    ):
        huge = b'{"incidentId": "' + b"x" * 500 + b'", "messageName": "Update"}\n'
        launcher = make_launcher({"lines": [huge, case_line("A")], "limit": 128})
        bridge = make_bridge(launcher, fake_clock)
        received: list[str] = []
        bridge.subscribe(lambda snapshot: received.append(snapshot.case_id))

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.events_emitted == 1)
            await bridge.stop()

        asyncio.run(_run())
        assert received == ["A"]
        assert bridge.parse_failures == 1

    def test_oversized_line_arriving_in_chunks_counts_once(
        self, fake_clock, make_launcher, case_line, eventually
    ):
        huge = b'{"incidentId": "' + b"x" * 500 + b'", "messageName": "Update"}\n'
        launcher = make_launcher({"limit": 128})
        bridge = make_bridge(launcher, fake_clock)
        received: list[str] = []
        bridge.subscribe(lambda snapshot: received.append(snapshot.case_id))

        async def _run():
            await bridge.start()
            stdout = launcher.processes[0].stdout
            for offset in range(0, len(huge), 100):
                stdout.feed_data(huge[offset : offset + 100])
                for _ in range(5):
                    await asyncio.sleep(0)
            stdout.feed_data(case_line("A"))
            await eventually(lambda: bridge.events_emitted == 1)
            await bridge.stop()

        asyncio.run(_run())
        assert received == ["A"]
        assert bridge.parse_failures == 1

    def test_final_line_without_newline_is_parsed(
        self, fake_clock, make_launcher, case_line, eventually
    ):
        launcher = make_launcher({"lines": [case_line("A").rstrip(b"\n")], "exit_code": 0})
        bridge = make_bridge(launcher, fake_clock)
        received: list[str] = []
        bridge.subscribe(lambda snapshot: received.append(snapshot.case_id))

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.events_emitted == 1)
            await bridge.stop()

        asyncio.run(_run())
        assert received == ["A"]

    def test_failing_handler_does_not_block_others(
        self, fake_clock, make_launcher, case_line, eventually
    ):
        launcher = make_launcher({"lines": [case_line("A"), case_line("B")]})
        bridge = make_bridge(launcher, fake_clock)
        received: list[str] = []

        def _explode(snapshot):
            raise RuntimeError("subscriber bug")

        bridge.subscribe(_explode)
        bridge.subscribe(lambda snapshot: received.append(snapshot.case_id))

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.events_emitted == 2)
            await bridge.stop()

        asyncio.run(_run())
        assert received == ["A", "B"]

    def test_unsubscribe(self, fake_clock, make_launcher, case_line, eventually):
        launcher = make_launcher({"lines": [case_line("A")]})
        bridge = make_bridge(launcher, fake_clock)
        received: list[str] = []
        unsubscribe = bridge.subscribe(lambda snapshot: received.append(snapshot.case_id))
        unsubscribe()
        unsubscribe()

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.events_emitted == 1)
            await bridge.stop()

        asyncio.run(_run())
        assert received == []

    def test_tee_appends_parsed_lines_only(
        self, fake_clock, make_launcher, case_line, eventually, tmp_path
    ):
        tee = tmp_path / "cases.ndjson"
        tee.write_bytes(b"existing\n")
        launcher = make_launcher({"lines": [case_line("A"), b"garbage\n", case_line("B")]})
        bridge = make_bridge(launcher, fake_clock, tee_path=tee)

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.events_emitted == 2)
            await bridge.stop()

        asyncio.run(_run())
        lines = tee.read_bytes().splitlines()
        assert lines == [b"existing", case_line("A").strip(), case_line("B").strip()]

    def test_tee_keeps_lines_verbatim(
        self, fake_clock, make_launcher, case_line, eventually, tmp_path
    ):
        tee = tmp_path / "cases.ndjson"
        crlf = b"  " + case_line("A").rstrip(b"\n") + b"\r\n"
        launcher = make_launcher({"lines": [crlf]})
        bridge = make_bridge(launcher, fake_clock, tee_path=tee)

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.events_emitted == 1)
            await bridge.stop()

        asyncio.run(_run())
        assert tee.read_bytes() == crlf


class TestRestarts:
    def test_unexpected_exits_back_off_exponentially(
        self, fake_clock, make_launcher, eventually
    ):
        launcher = make_launcher({"exit_code": 1}, {"exit_code": 1}, {"exit_code": 1}, {})
        bridge = make_bridge(launcher, fake_clock)

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.launch_count == 4)
            sleeps = list(fake_clock.sleeps)
            state = bridge.state
            await bridge.stop()
            return sleeps, state

        sleeps, state = asyncio.run(_run())
        assert sleeps == [1.0, 2.0, 4.0]
        assert state is BridgeState.RUNNING
        assert bridge.state is BridgeState.EXITED

    def test_parsed_line_resets_backoff(
        self, fake_clock, make_launcher, case_line, eventually
    ):
        launcher = make_launcher(
            {"exit_code": 1},
            {"exit_code": 1},
            {"lines": [case_line("A")], "exit_code": 0},
            {},
        )
        bridge = make_bridge(launcher, fake_clock)

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.launch_count == 4)
            sleeps = list(fake_clock.sleeps)
            await bridge.stop()
            return sleeps

        assert asyncio.run(_run()) == [1.0, 2.0, 1.0]
        assert bridge.events_emitted == 1

    def test_malformed_lines_do_not_reset_backoff(
        self, fake_clock, make_launcher, eventually
    ):
        launcher = make_launcher(
            {"exit_code": 1},
            {"lines": [b"nope\n"], "exit_code": 1},
            {},
        )
        bridge = make_bridge(launcher, fake_clock)

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.launch_count == 3)
            sleeps = list(fake_clock.sleeps)
            await bridge.stop()
            return sleeps

        assert asyncio.run(_run()) == [1.0, 2.0]

    def test_launch_failure_schedules_restart(
        self, fake_clock, make_launcher, eventually
    ):
        launcher = make_launcher(FileNotFoundError("dotnet"), {})
        bridge = make_bridge(launcher, fake_clock)

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.state is BridgeState.RUNNING)
            await bridge.stop()

        asyncio.run(_run())
        assert bridge.launch_count == 2
        assert fake_clock.sleeps[0] == 1.0

    def test_start_twice_raises(self, fake_clock, make_launcher):
        bridge = make_bridge(make_launcher(), fake_clock)

        async def _run():
            await bridge.start()
            try:
                with pytest.raises(RuntimeError):
                    await bridge.start()
            finally:
                await bridge.stop()

        asyncio.run(_run())


class TestStop:
    def test_stop_cancels_pending_restart(self, make_clock, make_launcher, eventually):
        clock = make_clock(block={1.0})
        launcher = make_launcher({"exit_code": 1})
        bridge = make_bridge(launcher, clock)

        async def _run():
            await bridge.start()
            await eventually(lambda: bridge.restart_pending)
            await bridge.stop()
            await asyncio.sleep(0)

        asyncio.run(_run())
        assert not bridge.restart_pending
        assert bridge.launch_count == 1
        assert bridge.state is BridgeState.EXITED

    def test_cooperative_process_is_terminated_not_killed(self, make_clock, make_launcher):
        clock = make_clock(block={5.0})
        launcher = make_launcher({})
        bridge = make_bridge(launcher, clock, stop_grace=5.0)

        async def _run():
            await bridge.start()
            await bridge.stop()

        asyncio.run(_run())
        process = launcher.processes[0]
        assert process.terminated
        assert not process.killed
        assert bridge.state is BridgeState.EXITED
        assert bridge.launch_count == 1

    def test_stubborn_process_is_killed_after_grace(self, fake_clock, make_launcher):
        launcher = make_launcher({"ignore_terminate": True})
        bridge = make_bridge(launcher, fake_clock, stop_grace=5.0)

        async def _run():
            await bridge.start()
            await bridge.stop()

        asyncio.run(_run())
        process = launcher.processes[0]
        assert process.terminated
        assert process.killed
        assert 5.0 in fake_clock.sleeps
        assert bridge.launch_count == 1

    def test_async_context_manager(self, make_clock, make_launcher):
        launcher = make_launcher({})
        bridge = make_bridge(launcher, make_clock(block={5.0}))

        async def _run():
            async with bridge as running:
                assert running.state is BridgeState.RUNNING

        asyncio.run(_run())
        assert bridge.state is BridgeState.EXITED
