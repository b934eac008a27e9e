import logging

import pytest

from xgeoref.listeners import Diagnostic, StoreListeners


class TestDiagnostic:
    def test_str_includes_source_and_exception(self):
        diagnostic = Diagnostic(
            logging.WARNING,
            "Can not read 'lat'.",
            source="sample.nc",
            exception=ValueError("bad values"),
        )

        assert str(diagnostic) == "sample.nc: Can not read 'lat'. (ValueError: bad values)"

    def test_str_without_source(self):
        diagnostic = Diagnostic(logging.INFO, "Hint.")

        assert str(diagnostic) == "Hint."


class TestStoreListeners:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.listeners = StoreListeners("sample.nc")
        self.received = []

    def test_callbacks_receive_warnings(self):
        self.listeners.add_listener(self.received.append)
        self.listeners.warning("Something is wrong.", variable="ts")

        assert len(self.received) == 1
        diagnostic = self.received[0]
        assert diagnostic.level == logging.WARNING
        assert diagnostic.message == "Something is wrong."
        assert diagnostic.source == "sample.nc"
        assert diagnostic.variable == "ts"

    def test_callbacks_receive_info(self):
        self.listeners.add_listener(self.received.append)
        self.listeners.info("Maybe caused by this.")

        assert self.received[0].level == logging.INFO

    def test_add_listener_ignores_duplicates(self):
        self.listeners.add_listener(self.received.append)
        self.listeners.add_listener(self.received.append)
        self.listeners.warning("Once.")

        assert len(self.received) == 1

    def test_remove_listener(self):
        callback = self.received.append
        self.listeners.add_listener(callback)
        self.listeners.remove_listener(callback)

        assert not self.listeners.has_listeners

    def test_remove_listener_raises_error_if_not_registered(self):
        with pytest.raises(KeyError, match="not a registered listener"):
            self.listeners.remove_listener(self.received.append)

    def test_invalid_attribute_describes_attribute_and_value(self):
        self.listeners.add_listener(self.received.append)
        self.listeners.invalid_attribute("lat", "units", "furlongs")

        diagnostic = self.received[0]
        assert diagnostic.attribute == "units"
        assert diagnostic.value == "furlongs"
        assert "'units' attribute of 'lat'" in diagnostic.message

    def test_logs_when_no_listener_is_registered(self, caplog):
        caplog.set_level(logging.WARNING, logger="xgeoref")
        self.listeners.warning("Nobody listens.")

        assert "sample.nc: Nobody listens." in caplog.text
