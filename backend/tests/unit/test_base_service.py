from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from homeservice.core.exceptions import NotFoundException, ServiceException
from homeservice.services.base import BaseService


class WidgetService(BaseService):
    @BaseService.measure_operation("make_widget")
    def make_widget(self, fail=False):
        if fail:
            raise NotFoundException("no widget")
        return "widget"


@pytest.fixture
def mock_db():
    return Mock(spec=Session)


class TestTransaction:
    def test_commits_on_success(self, mock_db):
        service = WidgetService(mock_db)

        with service.transaction():
            pass

        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_not_called()

    def test_database_errors_become_service_exceptions(self, mock_db):
        service = WidgetService(mock_db)

        with pytest.raises(ServiceException):
            with service.transaction():
                raise OperationalError("INSERT", {}, Exception("disk full"))

        mock_db.rollback.assert_called_once()
        mock_db.commit.assert_not_called()

    def test_domain_errors_roll_back_and_propagate(self, mock_db):
        service = WidgetService(mock_db)

        with pytest.raises(NotFoundException):
            with service.transaction():
                raise NotFoundException("gone")

        mock_db.rollback.assert_called_once()


def test_measure_operation_records_success_and_failure(mock_db):
    service = WidgetService(mock_db)
    before = service.get_metrics().get("make_widget", {}).get("count", 0)

    assert service.make_widget() == "widget"
    with pytest.raises(NotFoundException):
        service.make_widget(fail=True)

    stats = service.get_metrics()["make_widget"]
    assert stats["count"] == before + 2
    assert stats["failure_count"] >= 1
    assert WidgetService.make_widget._operation_name == "make_widget"
