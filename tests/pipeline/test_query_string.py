from natours.interfaces.http.query_string import encode_query, parse_query, split_key


def test_split_key_handles_brackets():
    """
    Validate bracket key splitting.

    1. Split plain, nested and append-style keys.
    2. Validate segment lists.
    """
    assert split_key("price") == ["price"]
    assert split_key("price[gte]") == ["price", "gte"]
    assert split_key("tags[]") == ["tags", ""]
    assert split_key("weird]key") == ["weird]key"]


def test_parse_query_builds_nested_and_repeated_values():
    """
    Validate nested query parsing.

    1. Parse operators, repeated keys and append-style keys.
    2. Validate operators nest under the field.
    3. Validate repeated keys accumulate into lists.
    """
    parsed = parse_query("price[gte]=100&price[lte]=500&difficulty=easy&difficulty=medium&tags[]=a&sort=")
    assert parsed == {
        "price": {"gte": "100", "lte": "500"},
        "difficulty": ["easy", "medium"],
        "tags": ["a"],
        "sort": "",
    }


def test_encode_query_flattens_back_to_brackets():
    """
    Validate query encoding.

    1. Encode a nested query.
    2. Parse the encoded string.
    3. Validate the same structure comes back.
    """
    query = {"price": {"gte": "100"}, "difficulty": ["easy", "medium"], "name": "a&b"}
    assert parse_query(encode_query(query)) == query
