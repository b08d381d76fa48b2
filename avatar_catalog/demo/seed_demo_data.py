# avatar_catalog/demo/seed_demo_data.py

from datetime import datetime

from avatar_catalog.storage.models import Asset, Avatar
from avatar_catalog.storage.repository import CatalogRepository, get_repository

DEMO_AVATARS = [
    Avatar(name="Mochi", base="Feline3.0", is_current=True),
    Avatar(name="Atlas", base="HumanMale4.2"),
    Avatar(name="Nova", base="HumanFemale4.2"),
    Avatar(name="Pip", base="Toon1.0"),
]

DEMO_ASSETS = [
    Asset(
        name="Cyber Jacket",
        creator="NeonWorks",
        type="clothing",
        price="$24.99",
        currency="USD",
        tags=("Clothing", "Cyberpunk"),
        compatible_with=("Feline3.0", "HumanMale4.2"),
        date_added=datetime(2024, 1, 14),
    ),
    Asset(
        name="Crystal Wings",
        creator="Aether",
        type="accessory",
        price="€12.00",
        currency="EUR",
        tags=("Wings", "Fantasy", "Animated"),
        compatible_with=("Fantasy2.0",),
        date_added=datetime(2024, 2, 3),
    ),
    Asset(
        name="Katana Set",
        creator="Steelcraft",
        type="prop",
        price="$8.50",
        currency="USD",
        tags=("Prop", "Weapon"),
        compatible_with=("HumanMale4.2", "HumanFemale4.2"),
        date_added=datetime(2024, 2, 21),
    ),
    Asset(
        name="Toon Shader Pack",
        creator="Inkline",
        type="shader",
        price="¥1500",
        currency="JPY",
        tags=("Shader",),
        date_added=datetime(2024, 3, 9),
    ),
    Asset(
        name="Free Hair Bundle",
        creator="Strands",
        type="body_part",
        price=None,
        tags=("Hairstyle",),
        compatible_with=("Feline3.0", "Toon1.0"),
        date_added=datetime(2024, 3, 30),
    ),
]


def seed_demo_data(repository: CatalogRepository) -> int:
    """Insert the demo avatars and assets. Returns the number of records added.

    Does nothing and returns 0 when the catalog already holds avatars or
    assets, so running it twice never duplicates the demo.
    """
    repository.initialize_schema()
    if repository.list_avatars() or repository.list_assets():
        return 0

    for avatar in DEMO_AVATARS:
        repository.add_avatar(avatar)
    for asset in DEMO_ASSETS:
        repository.add_asset(asset)

    collection = repository.create_collection("Cyberpunk Night", "Outfit for club worlds")
    for asset in repository.list_assets():
        if "Cyberpunk" in asset.tags or asset.type == "prop":
            repository.add_asset_to_collection(collection.id, asset.id)
    current = next(avatar for avatar in repository.list_avatars() if avatar.is_current)
    repository.link_avatar_to_collection(current.id, collection.id)

    return len(DEMO_AVATARS) + len(DEMO_ASSETS)


if __name__ == "__main__":
    count = seed_demo_data(get_repository())
    print(f"Demo catalog inserted ({count} records)")
