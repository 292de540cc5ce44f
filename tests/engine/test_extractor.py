from __future__ import annotations

from gallery_ledger.config import CatalogConfig
from gallery_ledger.engine import CatalogExtractor


def test_extracts_blocks_in_document_order(gallery_markup, block_html) -> None:
    markup = gallery_markup(
        block_html("a", "images/a.jpg"),
        block_html("b", "https://cdn.example.com/b.png"),
        block_html("c"),
    )
    blocks = CatalogExtractor().extract(markup)
    assert [block.id for block in blocks] == ["a", "b", "c"]
    assert [block.image_source for block in blocks] == [
        "images/a.jpg",
        "https://cdn.example.com/b.png",
        "",
    ]
    assert blocks[0].raw_content == block_html("a", "images/a.jpg")


def test_nested_elements_do_not_end_block_early() -> None:
    content = (
        '<div class="image-container" data-id="deep">'
        "<div><div><div><img src='x.jpg'></div></div></div>"
        "<div>tail</div>"
        "</div>"
        "<div>outside</div>"
    )
    blocks = CatalogExtractor().extract_blocks(content)
    assert len(blocks) == 1
    assert blocks[0].raw_content.endswith("<div>tail</div></div>")
    assert blocks[0].image_source == "x.jpg"


def test_non_qualifying_openers_are_skipped() -> None:
    content = (
        '<div class="image-container">no id</div>'
        '<div data-id="no-class">plain</div>'
        '<div class="image-container-wide" data-id="lookalike">x</div>'
        '<div class="card image-container" data-id="ok"><img src="ok.png"></div>'
    )
    blocks = CatalogExtractor().extract_blocks(content)
    assert [block.id for block in blocks] == ["ok"]


def test_unterminated_block_is_discarded() -> None:
    content = (
        '<div class="image-container" data-id="good"><img src="g.png"></div>'
        '<div class="image-container" data-id="broken"><div><img src="b.png"></div>'
    )
    blocks = CatalogExtractor().extract_blocks(content)
    assert [block.id for block in blocks] == ["good"]


def test_missing_gallery_yields_nothing(block_html) -> None:
    markup = f"<html><body><section class='hero'>{block_html('a', 'a.png')}</section></body></html>"
    extractor = CatalogExtractor()
    assert extractor.find_gallery(markup) is None
    assert extractor.extract(markup) == []


def test_empty_gallery_yields_nothing() -> None:
    markup = '<section class="gallery">\n</section>'
    assert CatalogExtractor().extract(markup) == []


def test_blocks_outside_gallery_are_ignored(gallery_markup, block_html) -> None:
    markup = gallery_markup(block_html("in", "in.png")) + block_html("out", "out.png")
    assert [block.id for block in CatalogExtractor().extract(markup)] == ["in"]


def test_first_non_empty_image_wins() -> None:
    content = '<div class="image-container" data-id="a"><img src=""><img src=" second.png "></div>'
    blocks = CatalogExtractor().extract_blocks(content)
    assert blocks[0].image_source == "second.png"


def test_custom_markers() -> None:
    config = CatalogConfig(gallery_class="grid", block_class="tile", id_attribute="data-key")
    markup = (
        '<section class="main grid">'
        '<div class="tile" data-key="k1"><img src="k1.png"></div>'
        '<div class="image-container" data-id="ignored"></div>'
        "</section>"
    )
    blocks = CatalogExtractor(config).extract(markup)
    assert [block.id for block in blocks] == ["k1"]


def test_scan_ids_reads_every_identifier(gallery_markup, block_html) -> None:
    markup = gallery_markup(block_html("a"), block_html("b"), block_html("a"))
    assert CatalogExtractor().scan_ids(markup) == ["a", "b", "a"]
