import pytest

from gunslinger.domain.exceptions import ValidationError
from gunslinger.validators import normalize_match_id, normalize_player_id, validate_max_tables


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("7", "P007"), (7, "P007"), ("007", "P007"), ("p7", "P007"), (" P012 ", "P012"), ("999", "P999")],
)
def test_normalize_player_id(raw, expected):
    assert normalize_player_id(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "0", "1000", "-1", "1.5", "P", None, "٣"])
def test_normalize_player_id_rejects(raw):
    with pytest.raises(ValidationError):
        normalize_player_id(raw)


def test_normalize_match_id():
    assert normalize_match_id("3") == "T0003"
    assert normalize_match_id("t0042") == "T0042"


def test_validate_max_tables():
    assert validate_max_tables("5") == 5
    assert validate_max_tables(200) == 200
    for bad in (0, 201, True, "x", 2.5):
        with pytest.raises(ValidationError):
            validate_max_tables(bad)
