import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so 'src' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ["SUPABASE_DISABLED"] = "1"
os.environ.pop("USE_LOCAL_DB", None)

TEST_TOKEN = "test-token"
OTHER_TOKEN = "someone-else"


@pytest.fixture(scope="session", autouse=True)
def storage_dir(tmp_path_factory) -> Path:
    # uploaded blobs land in a throwaway directory instead of the working tree
    path = tmp_path_factory.mktemp("storage")
    os.environ["SUPABASE_STORAGE_LOCAL_DIR"] = str(path)
    return path


@pytest.fixture(scope="session")
def client(storage_dir: Path) -> TestClient:
    # lazy import after env configured
    from src.main import create_app

    app = create_app()
    return TestClient(app)


@pytest.fixture()
def auth_header() -> dict[str, str]:
    # any token is accepted in disabled mode
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest.fixture()
def other_auth_header() -> dict[str, str]:
    return {"Authorization": f"Bearer {OTHER_TOKEN}"}


@pytest.fixture()
def user_id() -> str:
    from src.infrastructure.database.supabase_client import SupabaseAuthAdapter

    return SupabaseAuthAdapter(client=None).validate_token(TEST_TOKEN).id


@pytest.fixture(autouse=True)
def clean_state():
    """Empty the in-memory tables, the reference cache and the session store."""
    from src.infrastructure.api import dependencies
    from src.infrastructure.database.memory_store import get_memory_store

    get_memory_store().clear()
    dependencies.get_reference_cache().invalidate()
    dependencies._SESSION_STORE = None
    yield
    get_memory_store().clear()


@pytest.fixture()
def seeded(user_id):
    """Reference tables plus one listing with three images, the second one primary."""
    from src.infrastructure.database.memory_store import get_memory_store

    mem = get_memory_store()
    mem.insert("brands", {"id": 1, "name": "Toyota", "name_ar": "تويوتا"})
    mem.insert("brands", {"id": 2, "name": "Nissan", "name_ar": "نيسان"})
    mem.insert("models", {"id": 10, "name": "Camry", "brand_id": 1})
    mem.insert("models", {"id": 11, "name": "Corolla", "brand_id": 1})
    mem.insert("models", {"id": 20, "name": "Patrol", "brand_id": 2})
    mem.insert("spare_part_categories", {"id": 5, "name_en": "Brakes", "name_ar": "فرامل"})
    mem.insert("spare_part_categories", {"id": 6, "name_en": "Engine", "name_ar": "محرك"})
    mem.insert("countries", {"id": 1, "name": "Qatar", "code": "QA", "currency_code": "QAR"})
    mem.insert("countries", {"id": 2, "name": "United Arab Emirates", "code": "AE", "currency_code": "AED"})
    mem.insert("countries", {"id": 3, "name": "Bahrain", "code": "BH", "currency_code": "BHD"})
    mem.insert("cities", {"id": 100, "name": "Doha", "country_id": 1})
    mem.insert("cities", {"id": 101, "name": "Al Wakrah", "country_id": 1})
    mem.insert("cities", {"id": 200, "name": "Dubai", "country_id": 2})
    mem.insert("cities", {"id": 201, "name": "Abu Dhabi", "country_id": 2})
    mem.insert("cities", {"id": 300, "name": "Manama", "country_id": 3})

    part = mem.insert(
        "spare_parts",
        {
            "user_id": user_id,
            "title": "Brake pads",
            "price": 250.0,
            "currency": "QAR",
            "condition": "new",
            "part_type": "original",
            "brand_id": 1,
            "model_id": 10,
            "category_id": 5,
            "city_id": 100,
            "country_id": 1,
            "status": "active",
            "created_at": "2026-01-01T10:00:00+00:00",
            "updated_at": "2026-01-01T10:00:00+00:00",
        },
    )
    images = []
    for i, primary in enumerate((False, True, False)):
        images.append(
            mem.insert(
                "spare_part_images",
                {
                    "spare_part_id": part["id"],
                    "url": f"/local-storage/{part['id']}/seed-{i}.png",
                    "storage_path": f"{part['id']}/seed-{i}.png",
                    "is_primary": primary,
                    "created_at": f"2026-01-01T10:00:0{i}+00:00",
                },
            )
        )
    return {"spare_part": part, "images": images}
