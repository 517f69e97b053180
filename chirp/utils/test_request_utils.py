# chirp/utils/test_request_utils.py
import pytest
from flask import Flask

from chirp.utils.request_utils import MAX_PAGE_SIZE, get_limit_arg

@pytest.mark.parametrize("query, expected", [
    ("", 20),
    ("?limit=5", 5),
    ("?limit=0", 1),
    ("?limit=-3", 1),
    ("?limit=100000", MAX_PAGE_SIZE),
    ("?limit=abc", 20),
])
def test_get_limit_arg_clamps_to_page_bounds(query, expected):
    with Flask(__name__).test_request_context(f"/items{query}"):
        assert get_limit_arg(20) == expected

def test_get_limit_arg_respects_custom_maximum():
    with Flask(__name__).test_request_context("/items?limit=80"):
        assert get_limit_arg(10, maximum=50) == 50
