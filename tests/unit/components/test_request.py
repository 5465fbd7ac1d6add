"""Tests for Request."""

from __future__ import annotations

from fanoutsim.components.request import Direction, Request


def make_request(**overrides) -> Request:
    fields = dict(work=50, source_index=2, server_index=5, send_ms=0.0, original_send_ms=0.0)
    fields.update(overrides)
    return Request(**fields)


class TestRequest:
    """Tests for direction and delay accounting."""

    def test_starts_outbound(self):
        request = make_request()

        assert request.direction is Direction.OUTBOUND
        assert not request.is_response

    def test_turn_around_keeps_endpoints_and_restarts_leg(self):
        request = make_request()
        request.turn_around(150.0)

        assert request.is_response
        assert request.send_ms == 150.0
        assert request.original_send_ms == 0.0
        assert (request.source_index, request.server_index) == (2, 5)

    def test_add_delay_accumulates(self):
        request = make_request(delay_ms=150.0)
        request.add_delay(50)
        request.add_delay(25)
        assert request.delay_ms == 225.0

    def test_ids_are_unique(self):
        ids = {make_request().id for _ in range(100)}
        assert len(ids) == 100
