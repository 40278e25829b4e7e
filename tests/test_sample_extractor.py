from corsrelay.core.sample_extractor import extract_samples


def test_signed_exponent_and_integer():
    assert extract_samples("-3.5e2 foo 10") == [-350, 10]


def test_order_and_duplicates_preserved():
    assert extract_samples("b=2 a=1 c=2") == [2, 1, 2]


def test_decimal_forms():
    assert extract_samples("x .5 y +4.25 z 1E3 w 2e-2") == [0.5, 4.25, 1000.0, 0.02]


def test_no_numbers():
    assert extract_samples("hello, world") == []
    assert extract_samples("") == []


def test_numbers_inside_json_text():
    assert extract_samples('{"t":12,"v":[-1.5,3]}') == [12, -1.5, 3]
