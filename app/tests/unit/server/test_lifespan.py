import threading
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI

from server import lifespan as lifespan_module


@pytest.fixture
def app(service_factory, stub_channels):
    application = FastAPI()
    application.state.notification_service = service_factory(stub_channels)
    return application


@pytest.mark.unit
class TestLifespan:
    """Tests for the application lifespan."""

    @pytest.mark.asyncio
    async def test_keeps_preset_service(self, app):
        service = app.state.notification_service

        async with lifespan_module.lifespan(app):
            assert app.state.notification_service is service
            assert app.state.scheduled_stop_event is None

        with pytest.raises(RuntimeError):
            service.dispatch_queue.submit(print, "late")

    @pytest.mark.asyncio
    @patch("server.lifespan.build_notification_service")
    async def test_builds_service_when_missing(self, mock_build):
        app = FastAPI()

        async with lifespan_module.lifespan(app):
            assert app.state.notification_service is mock_build.return_value

        mock_build.return_value.shutdown.assert_called_once_with(wait=True)

    @patch("server.lifespan.scheduled_tasks")
    @patch("server.lifespan._is_test_environment", return_value=False)
    def test_starts_scheduled_tasks_outside_tests(self, _mock_env, mock_tasks):
        stop_event = threading.Event()
        mock_tasks.run_continuously.return_value = stop_event
        service, settings = MagicMock(), MagicMock()

        result = lifespan_module._start_scheduled_tasks(service, settings, MagicMock())

        mock_tasks.init.assert_called_once_with(service, settings)
        assert result is stop_event

    @patch("server.lifespan.scheduled_tasks")
    def test_skips_scheduled_tasks_under_pytest(self, mock_tasks):
        logger = MagicMock()

        result = lifespan_module._start_scheduled_tasks(MagicMock(), MagicMock(), logger)

        assert result is None
        mock_tasks.init.assert_not_called()
        logger.info.assert_called_once_with("scheduled_tasks_skipped", reason="test_environment")

    def test_stop_sets_event(self):
        stop_event = threading.Event()

        lifespan_module._stop_scheduled_tasks(stop_event)

        assert stop_event.is_set()

    def test_list_configs_logs_sections(self):
        logger = MagicMock()

        lifespan_module._list_configs(lifespan_module.get_settings(), logger)

        sections = {
            call.kwargs["config_setting"]
            for call in logger.info.call_args_list
            if call.args[0] == "configuration_loaded"
        }
        assert {"notifications", "retry", "server"} <= sections
