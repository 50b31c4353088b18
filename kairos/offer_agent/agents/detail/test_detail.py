import pytest

from kairos.offer_agent.agents.detail.detail import extract_detail, parse_detail
from kairos.offer_agent.clients.route_client import RouteMeasurement
from kairos.offer_agent.utils.text_extractors import TripEstimate


class TestExtractDetail:
    """Test cases for extract_detail."""

    def test_reads_the_suggested_price(self, detail_screen):
        snapshot = detail_screen(price="COL$8,600")
        info = extract_detail(snapshot.root)
        assert info.suggested_price == 8600

    def test_price_label_must_start_with_the_currency(self, node, build_snapshot):
        snapshot = build_snapshot(
            node(text="Aceptar por COL$40,000"),
            node("LinearLayout", children=[node(text="COL$25,000")]),
        )
        assert extract_detail(snapshot.root).suggested_price == 25000

    def test_reads_addresses_by_resource_id(self, detail_screen):
        info = extract_detail(detail_screen().root)
        assert info.origin == "Calle 80 # 10-20"
        assert info.destination == "Carrera 7 # 45-10"

    def test_reads_the_ui_estimate(self, detail_screen):
        info = extract_detail(detail_screen().root)
        assert info.ui_estimate == TripEstimate(minutes=28, distance_km=12.0)
        assert info.trip_distance_km == 12.0

    def test_finds_buttons(self, detail_screen):
        info = extract_detail(detail_screen().root)

        assert info.accept_button is not None
        assert info.accept_button.text == "Aceptar por COL$25,000"
        assert info.edit_button is not None
        assert info.edit_button.bounds.top == 1700
        assert [s.label for s in info.suggestions] == ["COL$26,000", "COL$27,500"]
        assert [s.amount for s in info.suggestions] == [26000, 27500]

    def test_clickable_prices_are_not_the_suggested_price(self, detail_screen):
        """Only the accept button and suggestions carry a price; none of them count."""
        info = extract_detail(detail_screen(price=None).root)
        assert info.suggested_price is None
        assert len(info.suggestions) == 2

    def test_missing_fields_stay_none(self, detail_screen):
        snapshot = detail_screen(
            estimate=None,
            origin=None,
            destination=None,
            with_edit_button=False,
            with_accept_button=False,
        )
        info = extract_detail(snapshot.root)

        assert info.origin is None
        assert info.destination is None
        assert info.ui_estimate is None
        assert info.trip_distance_km is None
        assert info.accept_button is None
        assert info.edit_button is None


class TestParseDetail:
    """Test cases for parse_detail."""

    @pytest.mark.asyncio
    async def test_route_measurement_is_authoritative(self, detail_screen, route_oracle):
        route_oracle.measure.return_value = RouteMeasurement(distance_km=14.0, duration_min=31)
        info = await parse_detail(detail_screen().root, route_oracle)

        route_oracle.measure.assert_awaited_once_with("Calle 80 # 10-20", "Carrera 7 # 45-10")
        assert info.api_trip_distance_km == 14.0
        assert info.ui_trip_distance_km == 12.0
        assert info.trip_distance_km == 14.0

    @pytest.mark.asyncio
    async def test_no_lookup_without_both_addresses(self, detail_screen, route_oracle):
        info = await parse_detail(detail_screen(destination=None).root, route_oracle)

        route_oracle.measure.assert_not_awaited()
        assert info.api_trip_distance_km is None
        assert info.trip_distance_km == 12.0

    @pytest.mark.asyncio
    async def test_unavailable_route_falls_back_to_ui(self, detail_screen, route_oracle):
        route_oracle.measure.return_value = None
        info = await parse_detail(detail_screen().root, route_oracle)

        assert info.api_trip_distance_km is None
        assert info.trip_distance_km == 12.0
