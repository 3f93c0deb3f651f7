"""Supported Caixa lottery products.

The set is closed: synchronization and queries only ever deal with these
identifiers, which double as the upstream URL path segment and as the keys of
the store document.
"""

LOTTERY_GAMES = (
    "lotofacil",
    "megasena",
    "maismilionaria",
    "quina",
    "lotomania",
    "timemania",
    "duplasena",
    "diadesorte",
    "supersete",
)