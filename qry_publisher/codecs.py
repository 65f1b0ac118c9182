from __future__ import annotations
from typing import Any, Dict, List, Mapping

import json

# endpoint key -> (status code -> count)
UsageTable = Mapping[str, Mapping[int, int]]

def _dumps(obj: Any) -> str:
    # compact separators and raw unicode, same text a JS JSON.stringify produces
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)

def format_stats_array(table: UsageTable) -> str:
    """
    Flatten the two-level usage table into array-of-pairs form and
    stringify it:  {"/v1/chain": {200: 10}} -> '[["/v1/chain",[[200,10]]]]'
    """
    pairs: List[list] = [
        [key, [[code, count] for code, count in codes.items()]]
        for key, codes in table.items()
    ]
    return _dumps(pairs)

def parse_stats_array(text: str) -> Dict[str, Dict[int, int]]:
    """Inverse of format_stats_array."""
    table: Dict[str, Dict[int, int]] = {}
    for key, codes in json.loads(text):
        table[key] = {code: count for code, count in codes}
    return table
