"""
Tests for the site adapters and the adapter registry.
"""

from bs4 import BeautifulSoup

from auctions.sites import (
    FreitasSite,
    SodreSantoroSite,
    SuperbidSite,
    filter_signature,
    get_all_sites,
    get_site,
    select_sites,
)
from auctions.sites.superbid import SUBCATEGORY_FACET

SODRE_LISTING = """
<html><body>
  <a href="/lote/abc-123">
    <div class="text-body-medium">VOLKSWAGEN GOL 1.0 2015/2016</div>
    <div class="text-primary text-headline-small">R$ 15.500,00</div>
    <span class="text-body-small">10/03/2025 - 10:00</span>
    <span class="text-body-small">Osasco/SP</span>
    <span class="text-body-small">85.000 km</span>
    <img src="https://cdn.test/gol.jpg">
  </a>
  <a href="/lote/no-title"><img src="x.jpg"></a>
</body></html>
"""

FREITAS_CARD = """
<div class="cardLote">
  <a href="/Leilao/5123">
    <div class="cardLote-descVeic">I/GM CLASSIC LIFE, 10/11, PLACA: D__-___0, GASOL/ALC, PRETA</div>
  </a>
  <div class="cardLote-vlr">R$ 12.000,00</div>
  <div class="cardLote-data">15/03/2025</div>
  <img data-src="/img/1.jpg">
</div>
"""


class TestRegistry:
    """Tests for adapter lookup."""

    def test_all_sites(self):
        """Superbid, Sodré Santoro and Freitas in crawl order."""
        assert [site.slug for site in get_all_sites()] == [
            "superbid",
            "sodre-santoro",
            "freitas-leiloeiro",
        ]

    def test_get_site_by_name_or_alias(self):
        """Display names and aliases both resolve."""
        assert isinstance(get_site("Sodré Santoro"), SodreSantoroSite)
        assert isinstance(get_site("freitas"), FreitasSite)
        assert get_site("unknown") is None

    def test_select_sites(self):
        """Unknown names are ignored; no names selects everything."""
        assert [site.slug for site in select_sites(["freitas", "nope"])] == ["freitas-leiloeiro"]
        assert len(select_sites([])) == 3
        assert len(select_sites(None)) == 3

    def test_filter_signature(self):
        """Signatures sort keys."""
        assert filter_signature({"b": "2", "a": "1"}) == "a=1&b=2"
        assert filter_signature({}) == ""
        assert filter_signature(None) == ""

    def test_candidate_slugs(self):
        """Primary slug first, then the name slug and aliases without duplicates."""
        assert SuperbidSite().candidate_slugs == [
            "superbid",
            "superbid-real",
            "superbid-hybrid",
            "superbid-net",
        ]


class TestSodreSantoro:
    """Tests for the numbered HTML listing adapter."""

    def test_parse_listing(self):
        """Cards without a title are skipped."""
        raw_lots = SodreSantoroSite().parse_listing(SODRE_LISTING)

        assert len(raw_lots) == 1
        raw = raw_lots[0]
        assert raw["title"] == "VOLKSWAGEN GOL 1.0 2015/2016"
        assert raw["url"] == "/lote/abc-123"
        assert raw["price_text"] == "R$ 15.500,00"
        assert raw["date_text"] == "10/03/2025 - 10:00"
        assert raw["location"] == "Osasco/SP"
        assert raw["km"] == "85.000 km"
        assert raw["image"] == "https://cdn.test/gol.jpg"

    def test_external_id_from_url(self):
        """The lot path segment is the id."""
        site = SodreSantoroSite()

        assert site.derive_external_id({"url": "/lote/abc-123?x=1"}) == "abc-123"
        assert site.derive_external_id({}) is None

    def test_page_urls(self):
        """Page 1 has no page parameter."""
        site = SodreSantoroSite()

        assert "page=" not in site.build_page_url({}, 1)
        assert site.build_page_url({}, 3).endswith("page=3")

    def test_terminal_page(self):
        """"No results" markers are detected accent-insensitively."""
        site = SodreSantoroSite()

        assert site.is_terminal_page("<p>Nenhum veículo encontrado</p>") is True
        assert site.is_terminal_page(SODRE_LISTING) is False


class TestFreitas:
    """Tests for the infinite-scroll adapter."""

    def test_parse_card_splits_registry_title(self):
        """Import prefix, brand, model and color come from the title."""
        site = FreitasSite()
        card = BeautifulSoup(FREITAS_CARD, "html.parser").select_one(".cardLote")

        raw = site.parse_card(card)

        assert raw["brand"] == "GM"
        assert raw["model"] == "CLASSIC LIFE"
        assert raw["color"] == "Preta"
        assert raw["image"] == "/img/1.jpg"
        assert site.derive_external_id(raw) == "freitas-5123"

    def test_plain_brand_prefix(self):
        """"FIAT/FIORINO FLEX" keeps the prefix as brand."""
        html = '<div class="cardLote"><a href="/Leilao/1"><div class="cardLote-descVeic">FIAT/FIORINO FLEX, 12/13</div></a></div>'
        card = BeautifulSoup(html, "html.parser").select_one(".cardLote")

        raw = FreitasSite().parse_card(card)

        assert raw["brand"] == "FIAT"
        assert raw["model"] == "FIORINO FLEX"

    def test_lot_type_hints(self):
        """Lot type filters hint the vehicle type."""
        site = FreitasSite()

        assert site.filter_hints({"TipoLoteId": "3"}) == {"vehicle_type_hint": "motorcycle"}
        assert site.filter_hints({"TipoLoteId": "7"}) == {"vehicle_type_hint": "truck"}
        assert site.filter_hints({}) == {}
        assert "TipoLoteId=3" in site.build_page_url({"TipoLoteId": "3"}, 1)


class TestSuperbid:
    """Tests for the structured query adapter."""

    def test_parse_query_response(self):
        """Offers get a URL; facets become value counts."""
        payload = {
            "total": "3",
            "offers": [{"id": 9, "product": {"shortDesc": "Fiat Uno 2015"}}, "junk"],
            "facets": {
                SUBCATEGORY_FACET: [
                    {"value": "Carros", "count": 2},
                    {"value": "Motos", "count": 0},
                ]
            },
        }

        page = SuperbidSite().parse_query_response(payload)

        assert page.total == 3
        assert len(page.raw_lots) == 1
        assert page.raw_lots[0]["url"] == "https://www.superbid.net/oferta/9"
        assert page.facets == {SUBCATEGORY_FACET: {"Carros": 2, "Motos": 0}}
        assert SuperbidSite.facet_values(page.facets, SUBCATEGORY_FACET) == ["Carros"]

    def test_parse_invalid_payload(self):
        """Non-dict payloads give an empty page."""
        page = SuperbidSite().parse_query_response(None)

        assert page.raw_lots == []
        assert page.total is None

    def test_query_url(self):
        """Facets are requested only when asked."""
        site = SuperbidSite()

        assert "facets=" in site.build_query_url({}, 1, include_facets=True)
        assert "facets=" not in site.build_query_url({}, 2, include_facets=False)

    def test_subcategory_hints(self):
        """Subcategory facet values hint the vehicle type."""
        site = SuperbidSite()

        assert site.filter_hints({SUBCATEGORY_FACET: "Motos"}) == {"vehicle_type_hint": "motorcycle"}
        assert site.filter_hints({SUBCATEGORY_FACET: "Caminhões"}) == {"vehicle_type_hint": "truck"}
        assert site.filter_hints({SUBCATEGORY_FACET: "Carros"}) == {"vehicle_type_hint": "car"}
        assert site.filter_hints({SUBCATEGORY_FACET: "Máquinas"}) == {}
        assert site.filter_hints({}) == {}

    def test_external_id(self):
        """Offer id first, then a title slug with the year."""
        site = SuperbidSite()

        assert site.derive_external_id({"id": 123}) == "superbid-123"
        assert site.derive_external_id({}, "Fiat Uno 2015") == "superbid-fiat-uno-2015-2015"
        assert site.derive_external_id({}) is None

    def test_is_relevant(self):
        """Parts and tools listed as vehicles are filtered out."""
        site = SuperbidSite()

        assert site.is_relevant({"product": {"shortDesc": "Kit de Peças Motor"}}) is False
        assert site.is_relevant({"product": {"shortDesc": "Fiat Uno 2015"}}) is True
