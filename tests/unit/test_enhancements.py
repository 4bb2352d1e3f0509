"""
Unit tests for the enhancement cost calculator.
"""
import pytest
from decimal import Decimal

from stableride.errors import ValidationError
from stableride.services.enhancements import calculate_enhancement_cost, list_enhancement_options


class TestEnhancementCost:
    def test_no_enhancements_costs_nothing(self):
        result = calculate_enhancement_cost(Decimal("100"), {})
        assert result["total"] == Decimal("0.00")
        assert result["breakdown"] == []

    def test_none_selection_is_empty(self):
        assert calculate_enhancement_cost(50, None)["total"] == Decimal("0.00")

    def test_trip_protection_flat_fee(self):
        result = calculate_enhancement_cost(Decimal("100"), {"trip_protection": True})
        assert result["trip_protection"] == Decimal("9.00")
        assert result["total"] == Decimal("9.00")
        assert result["breakdown"] == [{"item": "Trip Protection", "cost": Decimal("9.00")}]

    def test_two_bags_are_included(self):
        result = calculate_enhancement_cost(100, {"luggage": {"bag_count": 2}})
        assert result["luggage"] == Decimal("0.00")
        assert result["breakdown"] == []

    def test_extra_bags_and_special_items(self):
        result = calculate_enhancement_cost(100, {
            "luggage": {"meet_and_greet": True, "bag_count": 5, "special_items": ["golf_clubs", "fragile_items"]},
        })
        # 15 meet & greet + 3 * 5 extra bags + 2 * 10 special handling
        assert result["luggage"] == Decimal("50.00")
        assert [b["item"] for b in result["breakdown"]] == ["Meet & Greet", "Extra Luggage", "Special Handling"]

    @pytest.mark.parametrize("vehicle,expected", [
        ("standard", Decimal("0.00")),
        ("eco_friendly", Decimal("0.00")),
        ("suv", Decimal("15.00")),
        ("luxury_sedan", Decimal("25.00")),
        ("executive", Decimal("50.00")),
    ])
    def test_vehicle_upgrade_multiplier(self, vehicle, expected):
        result = calculate_enhancement_cost(Decimal("100"), {"vehicle_upgrade": vehicle})
        assert result["vehicle_upgrade"] == expected

    def test_vehicle_upgrade_rounds_half_up(self):
        # 33.33 * 0.15 = 4.9995
        result = calculate_enhancement_cost(Decimal("33.33"), {"vehicle_upgrade": "suv"})
        assert result["vehicle_upgrade"] == Decimal("5.00")

    def test_child_seats_and_stops(self):
        result = calculate_enhancement_cost(80, {
            "child_seats": {"infant": 1, "toddler": 1, "booster": 1},
            "additional_stops": 2,
        })
        assert result["child_seats"] == Decimal("45.00")
        assert result["additional_stops"] == Decimal("20.00")
        assert result["total"] == Decimal("65.00")

    def test_total_is_sum_of_line_items(self):
        result = calculate_enhancement_cost(Decimal("120"), {
            "trip_protection": True,
            "luggage": {"bag_count": 3},
            "vehicle_upgrade": "luxury_sedan",
            "child_seats": {"booster": 2},
            "additional_stops": 1,
        })
        assert result["total"] == sum(b["cost"] for b in result["breakdown"])
        assert result["total"] == Decimal("9") + Decimal("5") + Decimal("30") + Decimal("30") + Decimal("10")

    def test_zero_items_omitted_from_breakdown(self):
        result = calculate_enhancement_cost(100, {"trip_protection": False, "additional_stops": 0,
                                                  "vehicle_upgrade": "standard"})
        assert result["breakdown"] == []


class TestEnhancementValidation:
    def test_unknown_vehicle_rejected(self):
        with pytest.raises(ValidationError, match="Unknown vehicle type"):
            calculate_enhancement_cost(100, {"vehicle_upgrade": "limousine"})

    def test_negative_count_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            calculate_enhancement_cost(100, {"additional_stops": -1})

    def test_negative_seat_count_rejected(self):
        with pytest.raises(ValidationError):
            calculate_enhancement_cost(100, {"child_seats": {"infant": -2}})

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            calculate_enhancement_cost(-5, {"trip_protection": True})

    def test_unknown_special_item_rejected(self):
        with pytest.raises(ValidationError, match="surfboard"):
            calculate_enhancement_cost(100, {"luggage": {"special_items": ["surfboard"]}})


def test_options_filter_by_category():
    luggage = list_enhancement_options("luggage")
    assert {o["id"] for o in luggage} == {"meet_and_greet", "extra_luggage", "special_handling"}
    assert len(list_enhancement_options()) == 6
