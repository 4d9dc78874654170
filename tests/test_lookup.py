from rich.console import Console

from gamelib.models import GameRecord, PriceInfo, SearchResult
from lookup import render


def test_render_shows_price_discount_and_free_titles():
    paid = GameRecord(
        external_id="620",
        title="Portal 2",
        release_year="2011",
        genres=["Action", "Puzzle"],
        is_free=False,
        price=PriceInfo(currency="EUR", initial=9.19, final=4.6, discount_percent=50,
                        formatted_final="€4.60", formatted_initial="€9.19"),
    )
    free = GameRecord(external_id="570", title="Dota 2")
    console = Console(record=True, width=120)

    render(console, SearchResult(games=[paid, free], total=2, query="po"))

    text = console.export_text()
    assert "Portal 2" in text
    assert "€4.60 (-50%)" in text
    assert "Free" in text
    assert "2 result(s)" in text
