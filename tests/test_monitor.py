"""Tests for the event loop."""

import sys

import pytest

from conftest import FakeSource, pack_event
from watchrun.config import AppConfig
from watchrun.events import Bucket, EventKind
from watchrun.executor import CommandExecutor
from watchrun.inotify import EventDecodeError, EventSourceError
from watchrun.monitor import EventMonitor, MonitorState
from watchrun.registry import RegistrationError


@pytest.fixture
def watched_file(tmp_path):
    target = tmp_path / "f"
    target.write_text("")
    return str(target)


def build(config, buffers, formatter):
    source = FakeSource(buffers)
    monitor = EventMonitor(config, source, CommandExecutor(formatter))
    return monitor, source


class TestEventMonitor:
    """Tests for EventMonitor class."""

    def test_modify_event_end_to_end(self, watched_file, formatter, streams):
        stdout, stderr = streams
        config = AppConfig(paths=[watched_file])
        config.commands.add(Bucket.MODIFY, 'echo "hi $event $file ${dir-none}"')
        monitor, source = build(config, [pack_event(1, EventKind.MODIFY)], formatter)

        monitor.run()

        assert stdout.getvalue() == f"    -> hi MODIFY {watched_file} none\n"
        assert stderr.getvalue().startswith(f"MODIFY {watched_file}\n")
        assert source.closed
        assert monitor.state is MonitorState.TEARDOWN

    def test_create_in_directory_end_to_end(self, tmp_path, formatter, streams):
        stdout, _ = streams
        config = AppConfig(paths=[str(tmp_path)])
        config.commands.add(Bucket.CREATE, 'echo "$event $dir $file"')
        monitor, _ = build(config, [pack_event(1, EventKind.CREATE, "x.txt")], formatter)

        monitor.run()

        assert stdout.getvalue() == f"    -> CREATE {tmp_path} x.txt\n"

    def test_stats_count_events_and_dispatches(self, watched_file, formatter):
        config = AppConfig(paths=[watched_file])
        config.commands.add(Bucket.ALL, "true")
        config.commands.add(Bucket.CLOSE, "true")
        buffers = [
            pack_event(1, EventKind.OPEN) + pack_event(1, 0),
            pack_event(1, EventKind.CLOSE_NOWRITE | EventKind.ISDIR),
        ]
        monitor, _ = build(config, buffers, formatter)

        monitor.run()

        assert monitor.stats.cycles == 2
        assert monitor.stats.events_decoded == 3
        assert monitor.stats.dispatches == 4
        assert monitor.stats.commands_started == 4

    def test_registers_paths_in_order(self, tmp_path, formatter):
        first = tmp_path / "a"
        second = tmp_path / "b"
        first.write_text("")
        second.write_text("")
        config = AppConfig(paths=[str(first), str(second)])
        monitor, source = build(config, [], formatter)

        monitor.run()

        assert source.calls == [str(first), str(second)]
        assert monitor.registry.resolve(2) == str(second)

    def test_forced_mode_watches_remaining_paths(self, tmp_path, watched_file, formatter):
        config = AppConfig(paths=[str(tmp_path / "missing"), watched_file], force=True)
        monitor, source = build(config, [], formatter)

        monitor.run()

        assert source.calls == [watched_file]
        assert monitor.registry.resolve(1) == watched_file

    def test_missing_path_without_force_closes_source(self, tmp_path, formatter):
        config = AppConfig(paths=[str(tmp_path / "missing")])
        monitor, source = build(config, [], formatter)

        with pytest.raises(RegistrationError):
            monitor.run()
        assert source.closed

    def test_read_failure_propagates(self, watched_file, formatter):
        class BrokenSource(FakeSource):
            def read_buffer(self):
                raise EventSourceError("read() from inotify descriptor returned 0 bytes")

        config = AppConfig(paths=[watched_file])
        source = BrokenSource([])
        monitor = EventMonitor(config, source, CommandExecutor(formatter))

        with pytest.raises(EventSourceError):
            monitor.run()
        assert source.closed

    def test_corrupt_buffer_is_fatal(self, watched_file, formatter):
        config = AppConfig(paths=[watched_file])
        monitor, source = build(config, [b"\x00\x01"], formatter)

        with pytest.raises(EventDecodeError):
            monitor.run()
        assert source.closed

    def test_stop_ends_loop_after_current_buffer(self, watched_file, formatter):
        class StoppingSource(FakeSource):
            monitor = None

            def read_buffer(self):
                self.monitor.stop()
                return super().read_buffer()

        stopping = StoppingSource([pack_event(1, EventKind.OPEN), pack_event(1, EventKind.OPEN)])
        monitor = EventMonitor(AppConfig(paths=[watched_file]), stopping, CommandExecutor(formatter))
        stopping.monitor = monitor

        monitor.run()

        assert monitor.stats.cycles == 1
        assert len(stopping.buffers) == 1
        assert stopping.closed

    def test_process_buffer_without_run(self, watched_file, formatter, streams):
        stdout, _ = streams
        config = AppConfig(paths=[watched_file])
        config.commands.add(Bucket.ATTRIB, "echo attrib")
        monitor, _ = build(config, [], formatter)
        monitor.setup()

        monitor.process_buffer(pack_event(1, EventKind.ATTRIB) + pack_event(1, EventKind.ACCESS))

        assert stdout.getvalue() == "    -> attrib\n"


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify is Linux only")
class TestEventMonitorWithInotify:
    """Runs one real read through the monitor."""

    def test_real_modify_event(self, watched_file, formatter, streams):
        from watchrun.inotify import InotifySource

        stdout, _ = streams
        config = AppConfig(paths=[watched_file])
        config.commands.add(Bucket.MODIFY, "echo changed")
        source = InotifySource()
        monitor = EventMonitor(config, source, CommandExecutor(formatter))
        monitor.setup()

        with open(watched_file, "a") as handle:
            handle.write("data")
        monitor.process_buffer(source.read_buffer())
        source.close()

        assert "    -> changed\n" in stdout.getvalue()
