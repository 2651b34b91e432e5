#!/usr/bin/env python3
# Example usage of embedded_jsondoc_engine: two collections, queries, updates and a join.

import os

from embedded_jsondoc_engine import Collection
from rich.console import Console
from rich.table import Table

_console = Console()


def progress_printer(evt):
    if evt.get("pct") == 100:
        _console.print(f"[dim]progress: {evt.get('phase')} {evt.get('msg', '')}[/dim]")


def show(title, docs, columns):
    table = Table(title=title)
    for c in columns:
        table.add_column(c)
    for d in docs:
        table.add_row(*(str(d.get(c, "")) for c in columns))
    _console.print(table)


def main() -> None:
    base_dir = os.path.join(os.path.dirname(__file__), "data")

    tickets = Collection(base_dir, "tickets", integer_ids=True, on_progress=progress_printer)
    users = Collection(base_dir, "users", on_progress=progress_printer)
    tickets.drop()
    users.drop()

    tickets.insert([{"seat": "A1", "price": 40}, {"seat": "B7", "price": 25}, {"seat": "C3", "price": 60}])
    users.insert([
        {"name": "Ann", "age": 31, "purchased": [1, 3], "address": {"city": "Lyon"}},
        {"name": "Bob", "age": 17, "purchased": [2], "address": {"city": "Oslo"}},
    ])

    # Bare names are found at any depth: "city" lives under "address"
    show("Adults in Lyon", users.find({"city": "Lyon", "age": {"$gte": 18}}), ["name", "age"])

    users.update({"name": "Bob"}, {"$inc": {"age": 1}, "$merge": {"vip": True}})

    got = users.find({}, {
        "sort": {"age": -1},
        "join": [{
            "collection": tickets,
            "from": "purchased",
            "to": "_id",
            "as": "tickets",
            "options": {"sort": {"price": 1}, "project": {"seat": 1, "_id": 0}},
        }],
    })
    show("Users with tickets", got, ["name", "age", "vip", "tickets"])

    removed = tickets.remove({"price": {"$lt": 30}})
    _console.print(f"Removed tickets: {[t['seat'] for t in removed]}")


if __name__ == "__main__":
    main()
