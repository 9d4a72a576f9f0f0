"""Public storefront and product reviews."""

import pytest

from conftest import seed_product, seed_profile, seed_shop


async def live_shop(session, slug: str = "panaderia"):
    await seed_profile(session, "vendor-1", role="vendor", full_name="Ana")
    shop = await seed_shop(
        session,
        "vendor-1",
        slug,
        vendor_name="Panaderia Ana",
        description="Pan",
        status="active",
        is_active=True,
    )
    product = await seed_product(session, shop.id, name="Baguette")
    return shop, product


def review_url(slug: str, product_id: str, me: bool = True) -> str:
    url = f"/shops/{slug}/products/{product_id}/reviews"
    return f"{url}/me" if me else url


class TestStorefront:
    async def test_active_shop_lists_only_active_catalog(self, client, session):
        shop, _ = await live_shop(session)
        await seed_product(session, shop.id, name="Archivado", is_active=False)

        response = await client.get("/shops/panaderia")
        assert response.status_code == 200
        data = response.json()
        assert data["shop"]["vendorName"] == "Panaderia Ana"
        assert data["shop"]["summary"] == {"averageRating": "0.0", "reviewCount": 0}
        assert [product["name"] for product in data["products"]] == ["Baguette"]

    async def test_draft_shop_is_hidden(self, client, session):
        await seed_profile(session, "vendor-1", role="vendor")
        await seed_shop(session, "vendor-1", "borrador")

        response = await client.get("/shops/borrador")
        assert response.status_code == 404
        assert response.json() == {"error": "Tienda no encontrada."}

    async def test_unknown_slug(self, client):
        response = await client.get("/shops/nada")
        assert response.status_code == 404


class TestWriteReview:
    async def test_create_and_update(self, client, auth, session):
        _, product = await live_shop(session)
        await seed_profile(session, "buyer-1", email="beto@example.com", full_name="Beto")
        auth.login("buyer-1", "beto@example.com")

        response = await client.put(review_url("panaderia", product.id), json={"rating": 4, "comment": " Rico "})
        assert response.status_code == 200
        data = response.json()
        assert data["review"]["rating"] == 4
        assert data["review"]["comment"] == "Rico"
        assert data["review"]["reviewerDisplayName"] == "Beto"
        assert data["summary"] == {"averageRating": "4.0", "reviewCount": 1}

        response = await client.put(review_url("panaderia", product.id), json={"rating": 2.0, "comment": "   "})
        data = response.json()
        assert data["review"]["comment"] is None
        assert data["summary"] == {"averageRating": "2.0", "reviewCount": 1}

    async def test_summary_averages_reviewers(self, client, auth, session):
        _, product = await live_shop(session)
        await seed_profile(session, "buyer-1", full_name="Beto")
        await seed_profile(session, "buyer-2", full_name="Carla")

        auth.login("buyer-1")
        await client.put(review_url("panaderia", product.id), json={"rating": 5})
        auth.login("buyer-2")
        response = await client.put(review_url("panaderia", product.id), json={"rating": 4})
        assert response.json()["summary"] == {"averageRating": "4.5", "reviewCount": 2}

        storefront = (await client.get("/shops/panaderia")).json()
        assert storefront["shop"]["summary"] == {"averageRating": "4.5", "reviewCount": 2}

    @pytest.mark.parametrize("rating", [0, 6, 3.5, "4", True, None])
    async def test_rating_must_be_whole_between_one_and_five(self, client, auth, session, rating):
        _, product = await live_shop(session)
        await seed_profile(session, "buyer-1")
        auth.login("buyer-1")

        response = await client.put(review_url("panaderia", product.id), json={"rating": rating})
        assert response.status_code == 400
        assert response.json() == {"error": "La calificacion debe estar entre 1 y 5."}

    async def test_comment_length_limit(self, client, auth, session):
        _, product = await live_shop(session)
        await seed_profile(session, "buyer-1")
        auth.login("buyer-1")

        response = await client.put(review_url("panaderia", product.id), json={"rating": 3, "comment": "x" * 501})
        assert response.status_code == 400

        response = await client.put(review_url("panaderia", product.id), json={"rating": 3, "comment": "x" * 500})
        assert response.status_code == 200

    async def test_vendor_cannot_review_own_product(self, client, auth, session):
        _, product = await live_shop(session)
        auth.login("vendor-1")

        response = await client.put(review_url("panaderia", product.id), json={"rating": 5})
        assert response.status_code == 403
        assert response.json() == {"error": "No puedes dejar reviews en tus propios productos."}

    async def test_inactive_product_cannot_be_reviewed(self, client, auth, session):
        shop, _ = await live_shop(session)
        archived = await seed_product(session, shop.id, name="Viejo", is_active=False)
        await seed_profile(session, "buyer-1")
        auth.login("buyer-1")

        response = await client.put(review_url("panaderia", archived.id), json={"rating": 5})
        assert response.status_code == 404
        assert response.json() == {"error": "Producto no encontrado."}

    async def test_reviewer_without_profile_gets_one(self, client, auth, session):
        _, product = await live_shop(session)
        auth.login("new-user", "nuevo@example.com")

        response = await client.put(review_url("panaderia", product.id), json={"rating": 5})
        assert response.status_code == 200
        assert response.json()["review"]["reviewerDisplayName"] == "nuevo@example.com"

    async def test_requires_login(self, client, session):
        _, product = await live_shop(session)
        response = await client.put(review_url("panaderia", product.id), json={"rating": 5})
        assert response.status_code == 401


class TestReadAndDeleteReviews:
    async def test_my_review_is_returned_when_logged_in(self, client, auth, session):
        _, product = await live_shop(session)
        await seed_profile(session, "buyer-1", full_name="Beto")
        auth.login("buyer-1")
        await client.put(review_url("panaderia", product.id), json={"rating": 5, "comment": "Bueno"})

        data = (await client.get(review_url("panaderia", product.id, me=False))).json()
        assert data["myReview"]["rating"] == 5
        assert len(data["reviews"]) == 1

        auth.logout()
        data = (await client.get(review_url("panaderia", product.id, me=False))).json()
        assert data["myReview"] is None
        assert data["reviews"][0]["comment"] == "Bueno"

    async def test_delete_resets_summary(self, client, auth, session):
        _, product = await live_shop(session)
        await seed_profile(session, "buyer-1")
        auth.login("buyer-1")
        await client.put(review_url("panaderia", product.id), json={"rating": 5})

        response = await client.delete(review_url("panaderia", product.id))
        assert response.status_code == 200
        assert response.json()["summary"] == {"averageRating": "0.0", "reviewCount": 0}

    async def test_shop_reviews_carry_product_name(self, client, auth, session):
        shop, product = await live_shop(session)
        other = await seed_product(session, shop.id, name="Croissant")
        await seed_profile(session, "buyer-1")
        auth.login("buyer-1")
        await client.put(review_url("panaderia", product.id), json={"rating": 5})
        await client.put(review_url("panaderia", other.id), json={"rating": 3})

        data = (await client.get("/shops/panaderia/reviews")).json()
        assert data["summary"] == {"averageRating": "4.0", "reviewCount": 2}
        assert {review["productName"] for review in data["reviews"]} == {"Baguette", "Croissant"}

        limited = (await client.get("/shops/panaderia/reviews", params={"limit": "1.8"})).json()
        assert len(limited["reviews"]) == 1

        fallback = (await client.get("/shops/panaderia/reviews", params={"limit": "muchos"})).json()
        assert len(fallback["reviews"]) == 2
