"""Tests for Celery tasks."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from app.schemas.storage import CostCheckResponse, CostStatus, LifecycleSweepResponse, StorageCosts


class TestLifecycleSweepTask:
    """Tests for storage.run_lifecycle_sweep task."""

    def test_run_lifecycle_sweep_success(self):
        mock_session = MagicMock()
        sweep = LifecycleSweepResponse(processed=3, transitioned=2, unchanged=1)

        with patch("app.tasks.storage.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.storage.file_lifecycle.run_sweep", return_value=sweep
            ) as mock_run:
                with patch("app.tasks.storage.observe_job") as mock_observe:
                    from app.tasks.storage import run_lifecycle_sweep

                    result = run_lifecycle_sweep()

        mock_run.assert_called_once_with(mock_session)
        assert result["processed"] == 3
        assert result["transitioned"] == 2
        mock_session.close.assert_called_once()
        assert mock_observe.call_args[0][:2] == ("file_lifecycle_sweep", "success")

    def test_run_lifecycle_sweep_error_is_reported(self):
        mock_session = MagicMock()

        with patch("app.tasks.storage.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.storage.file_lifecycle.run_sweep",
                side_effect=RuntimeError("database unavailable"),
            ):
                with patch("app.tasks.storage.observe_job") as mock_observe:
                    from app.tasks.storage import run_lifecycle_sweep

                    result = run_lifecycle_sweep()

        assert result == {"error": "database unavailable"}
        mock_session.rollback.assert_called_once()
        mock_session.close.assert_called_once()
        assert mock_observe.call_args[0][:2] == ("file_lifecycle_sweep", "error")

    def test_cancelled_sweep_is_observed(self):
        mock_session = MagicMock()
        sweep = LifecycleSweepResponse(processed=1, cancelled=True)

        with patch("app.tasks.storage.SessionLocal", return_value=mock_session):
            with patch("app.tasks.storage.file_lifecycle.run_sweep", return_value=sweep):
                with patch("app.tasks.storage.observe_job") as mock_observe:
                    from app.tasks.storage import run_lifecycle_sweep

                    result = run_lifecycle_sweep()

        assert result["cancelled"] is True
        assert mock_observe.call_args[0][:2] == ("file_lifecycle_sweep", "cancelled")


class TestCostCheckTask:
    """Tests for storage.check_user_storage_costs task."""

    def test_check_user_storage_costs_success(self):
        mock_session = MagicMock()
        response = CostCheckResponse(
            costs=StorageCosts(
                hot=Decimal("40"),
                warm=Decimal("0"),
                archive=Decimal("0"),
                total=Decimal("40"),
                currency="THB",
            ),
            limit=Decimal("50"),
            percentage=Decimal("80"),
            status=CostStatus.warning,
        )

        with patch("app.tasks.storage.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.storage.cost_monitor.check_user_costs", return_value=response
            ) as mock_check:
                from app.tasks.storage import check_user_storage_costs

                result = check_user_storage_costs("user-1")

        mock_check.assert_called_once_with(mock_session, "user-1")
        assert result["status"] == "warning"
        mock_session.close.assert_called_once()

    def test_check_user_storage_costs_exception_rollback(self):
        mock_session = MagicMock()

        with patch("app.tasks.storage.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.storage.cost_monitor.check_user_costs",
                side_effect=Exception("Cost error"),
            ):
                from app.tasks.storage import check_user_storage_costs

                with pytest.raises(Exception, match="Cost error"):
                    check_user_storage_costs("user-1")

        mock_session.rollback.assert_called_once()
        mock_session.close.assert_called_once()
