"""Tests for report models and their wire format."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from crashpost import ErrorDetails, Report, ReportDetails, RequestSnapshot, UserInfo


def _report(**details: object) -> Report:
    return Report(
        occurred_on=datetime(2026, 10, 19, 8, 15, tzinfo=timezone.utc),
        details=ReportDetails(error=ErrorDetails(class_name="ValueError", message="bad"), **details),
    )


class TestWireFormat:
    """Tests for JSON serialization."""

    def test_camel_case_keys(self) -> None:
        report = _report(
            machine_name="web-01",
            user=UserInfo(identifier="u-1", is_anonymous=True),
            request=RequestSnapshot(http_method="POST", ip_address="10.0.0.1"),
        )

        document = json.loads(report.to_json())

        assert document["occurredOn"].startswith("2026-10-19T08:15:00")
        assert document["details"]["machineName"] == "web-01"
        assert document["details"]["error"] == {
            "className": "ValueError",
            "message": "bad",
            "stackTrace": [],
            "data": {},
            "innerError": None,
        }
        assert document["details"]["user"]["isAnonymous"] is True
        assert document["details"]["request"]["httpMethod"] == "POST"
        assert document["details"]["request"]["ipAddress"] == "10.0.0.1"

    def test_tags_and_custom_data_appear_once(self) -> None:
        body = _report(tags=["a", "b"], user_custom_data={"k": "v"}).to_json()
        document = json.loads(body)

        assert document["details"]["tags"] == ["a", "b"]
        assert document["details"]["userCustomData"] == {"k": "v"}
        assert body.count('"tags"') == 1
        assert body.count('"userCustomData"') == 1

    def test_populate_by_alias(self) -> None:
        snapshot = RequestSnapshot.model_validate({"httpMethod": "GET", "hostName": "shop.example"})

        assert snapshot.http_method == "GET"
        assert snapshot.host_name == "shop.example"


class TestImmutability:
    """Reports cannot be changed once built."""

    def test_report_is_frozen(self) -> None:
        report = _report()

        with pytest.raises(ValidationError):
            report.details.tags = ["late"]  # type: ignore[misc]
