"""
Tests for consuming network build streams
"""
import pytest

from devnet_chaos.models import BuildEvent, BuildEventKind
from devnet_chaos.errors import NetworkBuildError
from devnet_chaos.enclave.build_events import drain_build_events

from conftest import FakeBuildStream


def progress(message):
    return BuildEvent(BuildEventKind.PROGRESS, message)


class TestDrainBuildEvents:
    """Test build stream consumption"""

    def test_successful_build(self):
        """Test that a successful completion returns and closes the stream"""
        stream = FakeBuildStream([
            progress("uploading package"),
            BuildEvent(BuildEventKind.INFO, "adding services"),
            BuildEvent(BuildEventKind.COMPLETED, "done", successful=True),
        ])

        drain_build_events(stream)

        assert len(stream.consumed) == 3
        assert stream.closed

    def test_events_after_completion_not_consumed(self):
        """Test that consumption stops at the completion event"""
        stream = FakeBuildStream([
            BuildEvent(BuildEventKind.COMPLETED, "done", successful=True),
            progress("late"),
        ])

        drain_build_events(stream)

        assert len(stream.consumed) == 1

    def test_error_event(self):
        """Test that an error event fails the build"""
        stream = FakeBuildStream([
            progress("starting"),
            BuildEvent(BuildEventKind.ERROR, "service failed to start"),
            BuildEvent(BuildEventKind.COMPLETED, "done", successful=True),
        ])

        with pytest.raises(NetworkBuildError, match="service failed to start"):
            drain_build_events(stream)
        assert stream.closed

    def test_unsuccessful_completion(self):
        """Test that an unsuccessful completion fails the build"""
        stream = FakeBuildStream([BuildEvent(BuildEventKind.COMPLETED, "boom", successful=False)])

        with pytest.raises(NetworkBuildError):
            drain_build_events(stream)

    def test_stream_ends_without_completion(self):
        """Test that a truncated stream fails the build"""
        stream = FakeBuildStream([progress("starting"), BuildEvent(BuildEventKind.WARNING, "slow")])

        with pytest.raises(NetworkBuildError, match="ended before"):
            drain_build_events(stream)
        assert stream.closed
