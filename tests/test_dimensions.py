import pytest

from imagepipe.core.dimensions import parse_dimension, is_variable_dimension


class TestParseDimension:

    @pytest.mark.unit
    def test_numbers_are_fixed_pixels(self):
        dim = parse_dimension(800)
        assert dim.value == 800
        assert dim.unit == "px"
        assert dim.is_fixed
        assert not dim.is_variable
        assert not dim.is_invalid

        assert parse_dimension(12.5).value == 12.5

    @pytest.mark.unit
    def test_numeric_strings_take_leading_digits(self):
        assert parse_dimension("1080").value == 1080
        assert parse_dimension("1080px").value == 1080
        assert parse_dimension(" 64 ").value == 64

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["auto", "flex", "Variable", "natural", "{width}", "100*2", "flexible-height"])
    def test_variable_markers(self, raw):
        dim = parse_dimension(raw)
        assert dim.is_variable
        assert dim.value is None
        assert is_variable_dimension(raw)

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["abc", "", None, True, [100], {"w": 1}])
    def test_unparseable_input_is_invalid(self, raw):
        dim = parse_dimension(raw)
        assert dim.is_invalid
        assert not dim.is_fixed
        assert not is_variable_dimension(raw)

    @pytest.mark.unit
    def test_negative_numbers_parse_but_are_not_positive(self):
        """Sign checks belong to validation, not parsing."""
        assert parse_dimension(-5).value == -5
        # A string with a sign has no leading digits
        assert parse_dimension("-5").is_invalid
