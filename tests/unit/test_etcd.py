"""Etcd fixture lifecycle against fake collaborators."""

import threading

import pytest

from procfixture import settings
from procfixture.exceptions import (
    CleanupError, FixtureError, PathResolutionError, ReadinessTimeoutError, ResourceAllocationError,
    SpawnError, StopTimeoutError, TemplateError,
)
from procfixture.integration import ETCD_DEFAULT_ARGS, Etcd, get_etcd_start_message

pytestmark = pytest.mark.unit

ETCD_HOST = "this.is.etcd.listening.for.clients"
ETCD_PORT = 1234
START_MESSAGE = f"serving insecure client requests on {ETCD_HOST}:{ETCD_PORT}"


@pytest.fixture
def etcd(collaborators):
    return Etcd(**collaborators)


@pytest.fixture
def ready_etcd(etcd, fake_address_manager, fake_path_finder, starter):
    """An Etcd whose fake process announces readiness on spawn."""
    fake_path_finder.find_return = "/path/to/some/etcd"
    fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)
    starter.output_text = START_MESSAGE
    return etcd


# =============================================================================
# Starting and stopping
# =============================================================================


class TestStartAndStop:
    def test_can_start_and_stop_a_long_running_binary(
        self, ready_etcd, fake_session, fake_address_manager, fake_data_dir_manager, fake_path_finder, starter
    ):
        fake_session.output.write("Everything is dandy")
        fake_session.exit_code_returns_on_call = {0: -1, 1: 143}
        fake_session.exit_code_return = 143

        ready_etcd.start()

        assert fake_path_finder.find_calls == ["etcd"]
        assert fake_address_manager.initialize_calls == ["localhost"]
        assert fake_data_dir_manager.create_call_count == 1

        command = starter.commands[0]
        assert command.path == "/path/to/some/etcd"
        assert f"--advertise-client-urls=http://{ETCD_HOST}:{ETCD_PORT}" in command.args
        assert f"--listen-client-urls=http://{ETCD_HOST}:{ETCD_PORT}" in command.args
        assert "--data-dir=/tmp/fake-data-dir" in command.args

        assert ready_etcd.buffer().contains("Everything is dandy")
        assert fake_session.exit_code_call_count == 0
        assert ready_etcd.exit_code() == -1
        assert fake_session.exit_code_call_count == 1

        ready_etcd.stop()

        assert fake_session.terminate_calls == [None]
        assert fake_session.wait_calls == [settings.DEFAULT_STOP_TIMEOUT]
        assert fake_session.kill_call_count == 0
        assert fake_session.exit_code_call_count == 2
        assert ready_etcd.process_state.exit_code == 143
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1
        assert ready_etcd.exit_code() == 143

    def test_stopping_twice_does_not_repeat_teardown(
        self, ready_etcd, fake_session, fake_data_dir_manager, fake_address_manager
    ):
        ready_etcd.start()
        ready_etcd.stop()
        ready_etcd.stop()

        assert len(fake_session.terminate_calls) == 1
        assert len(fake_session.wait_calls) == 1
        assert fake_session.exit_code_call_count == 1
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1

    def test_rendered_args_follow_the_default_order(self, ready_etcd, starter):
        ready_etcd.start()

        assert starter.commands[0].args == [
            "--listen-peer-urls=http://localhost:0",
            f"--advertise-client-urls=http://{ETCD_HOST}:{ETCD_PORT}",
            f"--listen-client-urls=http://{ETCD_HOST}:{ETCD_PORT}",
            "--data-dir=/tmp/fake-data-dir",
        ]

    def test_timeouts_default_to_twenty_seconds(self, ready_etcd):
        ready_etcd.start()

        defaulted = ready_etcd.process_state.defaulted
        assert defaulted.start_timeout == settings.DEFAULT_START_TIMEOUT
        assert defaulted.stop_timeout == settings.DEFAULT_STOP_TIMEOUT
        assert defaulted.url == f"http://{ETCD_HOST}:{ETCD_PORT}"
        # Defaulting never writes back into the configured attributes.
        assert ready_etcd.path is None
        assert ready_etcd.start_timeout is None

    def test_cannot_start_twice_while_running(self, ready_etcd, starter):
        ready_etcd.start()

        with pytest.raises(FixtureError, match="already running"):
            ready_etcd.start()
        assert starter.call_count == 1

    def test_can_start_again_after_stop(self, ready_etcd, starter, fake_data_dir_manager):
        ready_etcd.start()
        ready_etcd.stop()
        ready_etcd.start()

        assert starter.call_count == 2
        assert fake_data_dir_manager.create_call_count == 2

    def test_context_manager_starts_and_stops(self, ready_etcd, fake_session):
        with ready_etcd as running:
            assert running is ready_etcd
            assert fake_session.terminate_calls == []
        assert len(fake_session.terminate_calls) == 1

    def test_output_is_teed_to_out(self, collaborators, fake_address_manager, starter, tmp_path):
        fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)
        starter.output_text = START_MESSAGE
        out_path = tmp_path / "etcd.out"
        with out_path.open("w") as out:
            etcd = Etcd(out=out, **collaborators)
            etcd.start()
        assert START_MESSAGE in out_path.read_text()


# =============================================================================
# Configured values skip their collaborator
# =============================================================================


class TestConfiguredValues:
    def test_configured_path_skips_the_path_finder(self, collaborators, fake_address_manager, fake_path_finder, starter):
        fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)
        starter.output_text = START_MESSAGE
        etcd = Etcd(path="/opt/etcd/bin/etcd", **collaborators)

        etcd.start()

        assert fake_path_finder.find_calls == []
        assert starter.commands[0].path == "/opt/etcd/bin/etcd"

    def test_configured_data_dir_is_used_and_never_destroyed(
        self, collaborators, fake_address_manager, fake_data_dir_manager, starter
    ):
        fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)
        starter.output_text = START_MESSAGE
        etcd = Etcd(data_dir="/var/lib/etcd-test", **collaborators)

        etcd.start()
        etcd.stop()

        assert "--data-dir=/var/lib/etcd-test" in starter.commands[0].args
        assert fake_data_dir_manager.create_call_count == 0
        assert fake_data_dir_manager.destroy_call_count == 0

    def test_configured_url_skips_the_address_manager(self, collaborators, fake_address_manager, starter):
        starter.output_text = "serving insecure client requests on 127.0.0.1:2379"
        etcd = Etcd(url="http://127.0.0.1:2379", **collaborators)

        etcd.start()

        assert fake_address_manager.initialize_calls == []
        assert "--listen-client-urls=http://127.0.0.1:2379" in starter.commands[0].args
        assert etcd.url() == "http://127.0.0.1:2379"

    def test_extra_args_override_defaults_and_are_rendered(self, collaborators, fake_address_manager, starter):
        fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)
        starter.output_text = START_MESSAGE
        etcd = Etcd(
            extra_args={"listen-client-urls": "http://0.0.0.0:{port}", "quota-backend-bytes": "1024"},
            **collaborators,
        )

        etcd.start()

        args = starter.commands[0].args
        assert "--listen-client-urls=http://0.0.0.0:1234" in args
        assert f"--listen-client-urls=http://{ETCD_HOST}:{ETCD_PORT}" not in args
        assert args[-1] == "--quota-backend-bytes=1024"
        assert ETCD_DEFAULT_ARGS[2] == "--listen-client-urls={url}"


# =============================================================================
# Start failures
# =============================================================================


class TestStartFailures:
    def test_data_dir_failure_propagates_and_never_spawns(
        self, etcd, fake_data_dir_manager, fake_address_manager, starter
    ):
        fake_data_dir_manager.create_error = Exception("Error on directory creation.")

        with pytest.raises(ResourceAllocationError) as excinfo:
            etcd.start()

        assert "Error on directory creation." in str(excinfo.value)
        assert excinfo.value.stage == "data_dir"
        assert starter.call_count == 0
        assert fake_address_manager.initialize_calls == []
        assert fake_data_dir_manager.destroy_call_count == 0

    def test_address_failure_propagates_never_spawns_and_releases_the_data_dir(
        self, etcd, fake_address_manager, fake_data_dir_manager, starter
    ):
        fake_address_manager.initialize_error = Exception("some error finding a free port")

        with pytest.raises(ResourceAllocationError, match="some error finding a free port") as excinfo:
            etcd.start()

        assert excinfo.value.stage == "address"
        assert starter.call_count == 0
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 0

    def test_starter_error_message_is_propagated_verbatim(
        self, etcd, starter, fake_data_dir_manager, fake_address_manager
    ):
        starter.error = Exception("Some error in the starter.")

        with pytest.raises(SpawnError) as excinfo:
            etcd.start()

        assert str(excinfo.value) == "Some error in the starter."
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1

    def test_spawn_error_from_the_starter_is_reraised_unchanged(self, etcd, starter):
        error = SpawnError("exec format error")
        starter.error = error

        with pytest.raises(SpawnError) as excinfo:
            etcd.start()

        assert excinfo.value is error

    def test_missing_binary_fails_before_any_allocation(
        self, etcd, fake_path_finder, fake_data_dir_manager, fake_address_manager, starter
    ):
        fake_path_finder.find_return = None

        with pytest.raises(PathResolutionError, match="TEST_ASSET_"):
            etcd.start()

        assert fake_data_dir_manager.create_call_count == 0
        assert fake_address_manager.initialize_calls == []
        assert starter.call_count == 0

    def test_unknown_placeholder_fails_without_spawning(
        self, collaborators, fake_data_dir_manager, fake_address_manager, starter
    ):
        etcd = Etcd(default_args=("--listen-client-urls={listen_url}",), **collaborators)

        with pytest.raises(TemplateError, match="listen_url"):
            etcd.start()

        assert starter.call_count == 0
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1

    def test_stop_after_a_failed_start_is_a_noop(self, etcd, fake_address_manager, fake_data_dir_manager):
        fake_address_manager.initialize_error = Exception("no ports left")
        with pytest.raises(ResourceAllocationError):
            etcd.start()

        etcd.stop()

        assert fake_data_dir_manager.destroy_call_count == 1


# =============================================================================
# Readiness
# =============================================================================


class TestReadiness:
    def test_times_out_and_leaves_the_process_running(
        self, collaborators, fake_address_manager, fake_session, fake_data_dir_manager
    ):
        fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)
        etcd = Etcd(start_timeout=0.2, **collaborators)

        with pytest.raises(ReadinessTimeoutError, match="timeout waiting for process etcd to start"):
            etcd.start()

        assert fake_session.terminate_calls == []
        assert fake_data_dir_manager.destroy_call_count == 0

        etcd.stop()
        assert len(fake_session.terminate_calls) == 1
        assert fake_data_dir_manager.destroy_call_count == 1

    def test_fails_fast_when_the_output_closes_before_the_marker(
        self, collaborators, fake_address_manager, fake_session, starter
    ):
        fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)
        fake_session.exit_code_return = 1

        def crash(command, output):
            output.write("etcdmain: listen tcp: address already in use\n")
            output.close()

        starter.on_start = crash
        etcd = Etcd(start_timeout=30, **collaborators)

        with pytest.raises(ReadinessTimeoutError, match="exited with code 1"):
            etcd.start()

    def test_marker_written_after_spawn_is_detected(self, collaborators, fake_address_manager, starter):
        fake_address_manager.initialize_return = (ETCD_PORT, ETCD_HOST)

        def announce_later(command, output):
            threading.Timer(0.2, output.write, args=(START_MESSAGE + "\n",)).start()

        starter.on_start = announce_later
        etcd = Etcd(start_timeout=5, **collaborators)

        etcd.start()

        assert etcd.buffer() is not None

    def test_start_message_uses_the_secure_prefix_for_https(self):
        assert get_etcd_start_message("https://h:1", "h", 1) == "serving client requests on h:1"
        assert get_etcd_start_message("http://h:1", "h", 1) == "serving insecure client requests on h:1"


# =============================================================================
# Stopping
# =============================================================================


class TestStop:
    def test_stop_on_a_never_started_server_is_a_noop(self, etcd, fake_session, starter):
        etcd.stop()

        assert fake_session.exit_code_call_count == 0
        assert fake_session.terminate_calls == []
        assert fake_session.wait_calls == []
        assert starter.call_count == 0

    def test_unresponsive_process_is_killed(self, ready_etcd, fake_session, fake_data_dir_manager, fake_address_manager):
        fake_session.wait_returns_on_call = {0: False, 1: True}
        fake_session.exit_code_return = 137
        ready_etcd.start()

        with pytest.raises(StopTimeoutError, match="killed") as excinfo:
            ready_etcd.stop()

        assert excinfo.value.killed is True
        assert fake_session.kill_call_count == 1
        assert fake_session.wait_calls == [settings.DEFAULT_STOP_TIMEOUT, settings.KILL_TIMEOUT]
        assert ready_etcd.process_state.exit_code == 137
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1

    def test_data_dir_failure_does_not_hide_the_exit_code(
        self, ready_etcd, fake_session, fake_data_dir_manager, fake_address_manager
    ):
        fake_session.exit_code_return = 143
        fake_data_dir_manager.destroy_error = OSError("device busy")
        ready_etcd.start()

        with pytest.raises(CleanupError, match="device busy"):
            ready_etcd.stop()

        assert ready_etcd.process_state.exit_code == 143
        assert fake_address_manager.release_call_count == 1

        ready_etcd.stop()
        assert fake_data_dir_manager.destroy_call_count == 1

    def test_several_failures_are_reported_together(self, ready_etcd, fake_session, fake_data_dir_manager):
        fake_session.wait_returns_on_call = {0: False, 1: True}
        fake_data_dir_manager.destroy_error = OSError("device busy")
        ready_etcd.start()

        with pytest.raises(CleanupError) as excinfo:
            ready_etcd.stop()

        assert len(excinfo.value.errors) == 2
        assert isinstance(excinfo.value.errors[0], StopTimeoutError)
        assert "device busy" in str(excinfo.value)

    def test_terminate_failure_still_waits_and_cleans_up(self, ready_etcd, fake_session, fake_data_dir_manager):
        fake_session.terminate_error = OSError("operation not permitted")
        ready_etcd.start()

        with pytest.raises(CleanupError, match="operation not permitted"):
            ready_etcd.stop()

        assert len(fake_session.wait_calls) == 1
        assert fake_data_dir_manager.destroy_call_count == 1

    def test_failing_wait_still_kills_and_releases_everything(
        self, ready_etcd, fake_session, fake_data_dir_manager, fake_address_manager
    ):
        ready_etcd.start()
        fake_session.wait_error = OSError("wait failed")
        fake_session.exit_code_return = 137

        with pytest.raises(CleanupError, match="wait failed"):
            ready_etcd.stop()

        assert fake_session.kill_call_count == 1
        assert ready_etcd.process_state.exit_code == 137
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1

        ready_etcd.stop()
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1

    def test_failing_exit_code_query_still_releases_everything(
        self, ready_etcd, fake_session, fake_data_dir_manager, fake_address_manager
    ):
        ready_etcd.start()
        fake_session.exit_code_error = OSError("no such process")

        with pytest.raises(CleanupError, match="exit code of etcd: no such process"):
            ready_etcd.stop()

        assert ready_etcd.process_state.exit_code == settings.RUNNING_EXIT_CODE
        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1

    def test_unexpected_stop_failure_still_releases_resources(
        self, ready_etcd, fake_session, fake_data_dir_manager, fake_address_manager
    ):
        ready_etcd.start()
        fake_session.terminate_error = KeyboardInterrupt()

        with pytest.raises(KeyboardInterrupt):
            ready_etcd.stop()

        assert fake_data_dir_manager.destroy_call_count == 1
        assert fake_address_manager.release_call_count == 1


# =============================================================================
# URL
# =============================================================================


class TestURL:
    def test_can_be_queried_for_the_url_it_listens_on(self, etcd, fake_address_manager):
        fake_address_manager.host_return = "the.host.for.etcd"
        fake_address_manager.port_return = 6789

        assert etcd.url() == "http://the.host.for.etcd:6789"

    def test_port_failure_is_propagated(self, etcd, fake_address_manager):
        fake_address_manager.port_error = Exception("zort")

        with pytest.raises(Exception, match="zort"):
            etcd.url()

    def test_host_failure_is_propagated(self, etcd, fake_address_manager):
        fake_address_manager.host_error = Exception("bam!")

        with pytest.raises(Exception, match="bam!"):
            etcd.url()
