import pytest

from metalpro.catalog import CatalogIndex, Product


def make_product(product_id: str, family: str, **kwargs) -> Product:
    kwargs.setdefault("title", product_id)
    return Product(id=product_id, family=family, **kwargs)


@pytest.fixture
def products() -> list[Product]:
    return [
        make_product(
            "hea-100",
            "profiles",
            title="Profil HEA 100 S235JR",
            grade="S235JR",
            standards=("EN 10025-2",),
            dimension="HEA 100",
            linear_mass_kg_per_m=16.7,
            base_price=95.0,
        ),
        make_product(
            "ipe-200",
            "profiles",
            title="Profil IPE 200 S235JR",
            grade="S235JR",
            standards=("EN 10025-2",),
            dimension="IPE 200",
            linear_mass_kg_per_m=22.4,
            base_price=120.0,
        ),
        make_product(
            "plate-6-s235",
            "plates",
            grade="S235JR",
            standards=("EN 10025",),
            dimension="6mm",
            base_price=6.2,
            price_unit="kg",
        ),
        make_product(
            "plate-6-s355",
            "plates",
            grade="S355J2",
            standards=("EN 10025",),
            dimension="6mm",
            base_price=6.9,
            price_unit="kg",
        ),
        make_product(
            "pipe-48",
            "pipes",
            title="Teava rotunda 48,3x3,2",
            grade="S235JRH",
            standards=("EN 10219",),
            cross_section_area_cm2=4.53,
            base_price=24.0,
        ),
        make_product(
            "bolt-m16",
            "fasteners",
            grade="8.8",
            standards=("DIN 933",),
            dimension="M16x60",
            weight_per_piece_kg=0.13,
            pieces_per_bundle=50,
            base_price=2.4,
            price_unit="pcs",
        ),
    ]


@pytest.fixture
def index(products: list[Product]) -> CatalogIndex:
    return CatalogIndex(products)
