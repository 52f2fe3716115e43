"""Tests for the evidence channels in evidence.py — each runs on plain HTML."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from evidence import (
    DOM_PASS,
    FULL_PASS,
    Snapshot,
    asset_identifier,
    collect,
    css_backgrounds,
    image_elements,
    initial_state,
    markup_urls,
    page_total,
    script_payloads,
)
from models import PageMarker


def pages_of(evidence):
    return {(m.page, m.hash) for m in evidence.markers}


# --- image elements ---


def test_image_elements_reads_src_and_lazy_attributes():
    html = (
        '<img src="https://html.scribdassets.com/xyz9/images/1-ab12.png?v=2">'
        '<img data-src="/xyz9/images/2-cd34.jpg">'
        '<img srcset="/xyz9/images/3-ef56.png 1x, /xyz9/images/3-ef56.png 2x">'
        '<img src="/static/logo.png">'
    )
    found = image_elements(Snapshot.from_markup(html))
    assert pages_of(found) >= {(1, "ab12"), (2, "cd34"), (3, "ef56")}
    assert found.asset_id == "xyz9"


def test_image_elements_uses_live_sources():
    snap = Snapshot(image_sources=["https://html.scribdassets.com/q1/images/7-abc.png"])
    found = image_elements(snap)
    assert pages_of(found) == {(7, "abc")}
    assert found.asset_id == "q1"


def test_image_elements_ignores_page_zero():
    snap = Snapshot(image_sources=["/a/images/0-abc.png"])
    assert image_elements(snap).markers == []


def test_image_elements_ignores_other_hosts():
    snap = Snapshot(image_sources=[
        "https://cdn.example.net/ads/images/4-dead.png",
        "https://html.scribdassets.com/q1/images/5-beef.png",
    ])
    found = image_elements(snap)
    assert pages_of(found) == {(5, "beef")}
    assert found.asset_id == "q1"


def test_markers_carry_the_asset_their_url_names():
    snap = Snapshot(image_sources=[
        "https://html.scribdassets.com/docA/images/1-aa11.png",
        "//html.scribdassets.com/otherB/images/2-bb22.png",
        "/docA/images/3-cc33.png",
    ])
    found = image_elements(snap)
    assert {m.page: m.asset for m in found.markers} == {1: "docA", 2: "otherB", 3: None}
    assert found.asset_id == "docA"


# --- raw markup ---


def test_markup_urls_finds_unattached_urls():
    html = """<div data-pending='["https://html.scribdassets.com/as1/images/4-aa.png",
              "https://html.scribdassets.com/as1/images/5-bb.png"]'></div>"""
    found = markup_urls(Snapshot.from_markup(html))
    assert pages_of(found) == {(4, "aa"), (5, "bb")}
    assert found.asset_id == "as1"
    assert {m.asset for m in found.markers} == {"as1"}


def test_markup_urls_handles_escaped_slashes():
    html = '<script>var u = "https:\\/\\/html.scribdassets.com\\/as2\\/images\\/9-c0ffee.png";</script>'
    found = markup_urls(Snapshot.from_markup(html))
    assert pages_of(found) == {(9, "c0ffee")}
    assert found.asset_id == "as2"


# --- scripts ---


def test_script_payloads_all_shapes(script_payload_html):
    found = script_payloads(Snapshot.from_markup(script_payload_html))
    assert pages_of(found) >= {
        (1, "0a1b"),
        (2, "0c2d"),
        (3, "3e3e"),
        (4, "4f4f"),
        (5, "5a5a"),
    }


def test_script_payloads_skips_scripts_without_hashes():
    html = '<script>var pages = {"1": {"width": 10}};</script>'
    assert script_payloads(Snapshot.from_markup(html)).markers == []


# --- initial state ---


def test_initial_state_walks_nested_objects():
    state = {
        "document": {
            "meta": {"pageCount": 12},
            "pages": [
                {"pageNumber": 1, "hash": "11aa"},
                {"page_number": "2", "page_hash": "22bb"},
                {"number": 3, "title": "no hash here"},
            ],
            "byNumber": {"4": {"hash": "44dd"}},
            "assets": {"base": "https://html.scribdassets.com/st8/pages/"},
        }
    }
    found = initial_state(Snapshot(state_payloads=[state]))
    assert pages_of(found) == {(1, "11aa"), (2, "22bb"), (4, "44dd")}
    assert found.total_pages == 12
    assert found.asset_id == "st8"


def test_initial_state_reads_json_script_tags():
    html = (
        '<script type="application/json" id="__NEXT_DATA__">'
        '{"props": {"pages": [{"page": 6, "hash": "66"}], "total_pages": 8}}'
        "</script>"
        '<script type="application/json">not json</script>'
    )
    found = initial_state(Snapshot.from_markup(html))
    assert pages_of(found) == {(6, "66")}
    assert found.total_pages == 8


def test_initial_state_rejects_non_hex_hash():
    found = initial_state(Snapshot(state_payloads=[{"page": 1, "hash": "not-a-hash"}]))
    assert found.markers == []


# --- css ---


def test_css_backgrounds_inline_and_style_blocks():
    html = (
        "<style>.p10 { background-image: url('/bg1/images/10-abcd.png'); }</style>"
        '<div style="background: url(&quot;https://html.scribdassets.com/bg1/images/11-ef01.png&quot;)"></div>'
    )
    found = css_backgrounds(Snapshot.from_markup(html))
    assert pages_of(found) == {(10, "abcd"), (11, "ef01")}
    assert found.asset_id == "bg1"


# --- asset id ---


def test_asset_identifier_first_occurrence():
    html = (
        '<link rel="preconnect" href="https://html.scribdassets.com">'
        '<script src="https://html.scribdassets.com/first1/pages/1.jsonp"></script>'
        '<img src="https://html.scribdassets.com/second2/images/1-aa.png">'
    )
    assert asset_identifier(Snapshot.from_markup(html)).asset_id == "first1"


def test_asset_identifier_missing():
    assert asset_identifier(Snapshot.from_markup("<p>nothing</p>")).asset_id is None


# --- page total ---


def test_page_total_from_visible_text():
    assert page_total(Snapshot(text="Uploaded by someone. 42 pages")).total_pages == 42


def test_page_total_slides():
    assert page_total(Snapshot(text="A deck of 17 slides")).total_pages == 17


def test_page_total_structured_field():
    snap = Snapshot(html='<script>{"total_pages": 30}</script>')
    assert page_total(snap).total_pages == 30


def test_page_total_skips_zero():
    assert page_total(Snapshot(text="0 pages selected, 5 pages total")).total_pages == 5


def test_page_total_absent():
    assert page_total(Snapshot(text="no count here")).total_pages is None


# --- registry ---


def test_collect_runs_every_extractor():
    evidence = collect(Snapshot.from_markup("<p>2 pages</p>"))
    assert [e.channel for e in evidence] == [
        "image_elements",
        "markup_urls",
        "script_payloads",
        "initial_state",
        "css_backgrounds",
        "asset_identifier",
        "page_total",
    ]
    assert len(FULL_PASS) == 7


def test_dom_pass_is_cheap_subset():
    assert set(DOM_PASS) <= set(FULL_PASS)
    snap = Snapshot(
        image_sources=["/a/images/1-aa.png"],
        background_styles=["background-image: url(/a/images/2-bb.png)"],
    )
    markers = [m for e in collect(snap, DOM_PASS) for m in e.markers]
    assert PageMarker(1, "aa") in markers
    assert PageMarker(2, "bb") in markers
