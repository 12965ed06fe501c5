"""
Tests for the access logging middleware and the JSON formatter
"""

import json
import logging

from portal_authz.middleware.logging import (
    ACCESS_LOGGER,
    RequestIdFilter,
    StructuredFormatter,
    level_for_status,
    request_id_var,
)
from utils.factories import create_user


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("portal_authz.test", logging.INFO, __file__, 1, "job %s updated", (2,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_formats_json_with_context(self):
        record = make_record(request_id="req-1", job_id=2, caller_uid="admin-user-id")

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "job 2 updated"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "portal_authz.test"
        assert entry["request_id"] == "req-1"
        assert entry["job_id"] == 2
        assert entry["caller_uid"] == "admin-user-id"
        assert "target_user_id" not in entry

    def test_request_id_filter_reads_contextvar(self):
        token = request_id_var.set("req-xyz")
        try:
            record = make_record()
            assert RequestIdFilter().filter(record) is True
            assert record.request_id == "req-xyz"
        finally:
            request_id_var.reset(token)


class TestLevelForStatus:
    def test_levels(self):
        assert level_for_status(200) == logging.INFO
        assert level_for_status(401) == logging.WARNING
        assert level_for_status(500) == logging.ERROR


class TestAccessLog:
    async def test_request_logged_with_caller(self, client, db, auth_headers, caplog):
        await create_user(db, "regular-user-id")
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        await client.get("/api/v1/permissions/effective", headers=auth_headers("regular-user-id"))

        records = [r for r in caplog.records if r.name == ACCESS_LOGGER]
        assert len(records) == 1
        assert records[0].status_code == 200
        assert records[0].caller_uid == "regular-user-id"
        assert records[0].path == "/api/v1/permissions/effective"

    async def test_anonymous_request_logged_as_warning(self, client, caplog):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        await client.get("/api/v1/permissions/effective")

        records = [r for r in caplog.records if r.name == ACCESS_LOGGER]
        assert records[0].levelno == logging.WARNING
        assert records[0].caller_uid == "-"

    async def test_health_not_logged(self, client, caplog):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        await client.get("/health")

        assert not [r for r in caplog.records if r.name == ACCESS_LOGGER]

    async def test_generated_request_id(self, client):
        response = await client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 32
