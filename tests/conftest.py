"""Shared test fixtures for procfixture tests"""

import logging

import pytest

from tests.fakes import FakeAddressManager, FakeDataDirManager, FakePathFinder, FakeSession, RecordingStarter


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    """Capture procfixture logs at DEBUG so failures show the full lifecycle."""
    caplog.set_level(logging.DEBUG, logger="procfixture")
    caplog.set_level(logging.DEBUG, logger="proc")


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_address_manager():
    return FakeAddressManager()


@pytest.fixture
def fake_data_dir_manager():
    return FakeDataDirManager()


@pytest.fixture
def fake_path_finder():
    return FakePathFinder()


@pytest.fixture
def starter(fake_session):
    return RecordingStarter(fake_session)


@pytest.fixture
def collaborators(fake_address_manager, fake_data_dir_manager, fake_path_finder, starter):
    """Keyword arguments wiring a supervisor to the fakes."""
    return {
        "address_manager": fake_address_manager,
        "data_dir_manager": fake_data_dir_manager,
        "path_finder": fake_path_finder,
        "process_starter": starter,
    }
