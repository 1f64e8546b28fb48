import pytest
import httpx


async def _register(client: httpx.AsyncClient, email: str, company: str, user_type: str) -> dict:
    response = await client.post("/auth/register", json={
        "email": email,
        "password": "secret123",
        "passwordConfirm": "secret123",
        "name": f"{company} 담당자",
        "company": company,
        "userType": user_type,
    })
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.mark.asyncio
async def test_quote_request_to_selection_flow(http_client: httpx.AsyncClient):
    """
    Buyer posts a request, two sellers quote it, the buyer picks one and the
    request closes to any further quotes.
    """
    buyer = await _register(http_client, "buyer@example.com", "대한정밀", "BUYER")
    seller = await _register(http_client, "seller@example.com", "한국서보상사", "SELLER")
    rival = await _register(http_client, "rival@example.com", "동양FA", "SELLER")
    late_seller = await _register(http_client, "late@example.com", "늦은상사", "SELLER")

    created = await http_client.post("/requests", headers=buyer, json={
        "category": "서보모터",
        "maker": "Mitsubishi",
        "partNumber": "HG-KR43B",
        "quantity": 4,
        "desiredDelivery": "2주 이내",
        "isAnonymous": True,
    })
    assert created.status_code == 201
    request_id = created.json()["id"]

    # Sellers see the open request with the buyer masked
    open_requests = (await http_client.get("/requests", headers=seller)).json()
    assert [r["id"] for r in open_requests] == [request_id]
    assert open_requests[0]["buyerCompany"] == "익명"

    submitted = await http_client.post(f"/requests/{request_id}/responses", headers=seller, json={
        "unitPrice": 450000, "deliveryDays": 14, "inStock": True,
    })
    assert submitted.status_code == 201
    response_id = submitted.json()["response"]["id"]
    assert submitted.json()["response"]["totalPrice"] == 1800000

    duplicate = await http_client.post(f"/requests/{request_id}/responses", headers=seller, json={
        "unitPrice": 400000, "deliveryDays": 10,
    })
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_response"

    rival_quote = await http_client.post(f"/requests/{request_id}/responses", headers=rival, json={
        "unitPrice": 470000, "deliveryDays": 3,
    })
    assert rival_quote.status_code == 201
    assert [r["sellerCompany"] for r in rival_quote.json()["responses"]] == ["동양FA", "한국서보상사"]

    # The buyer sees both quotes ranked and a response count on the list
    mine = (await http_client.get("/requests", headers=buyer)).json()
    assert mine[0]["responseCount"] == 2
    assert mine[0]["buyerCompany"] == "대한정밀"
    detail = (await http_client.get(f"/requests/{request_id}", headers=buyer)).json()
    assert detail["isOwner"] is True
    assert [r["unitPrice"] for r in detail["responses"]] == [450000, 470000]
    assert detail["responses"][0]["badge"] == "LOWEST_PRICE"
    by_delivery = (await http_client.get(f"/requests/{request_id}?sort=delivery", headers=buyer)).json()
    assert by_delivery["responses"][0]["sellerCompany"] == "동양FA"
    assert by_delivery["responses"][0]["badge"] == "FASTEST_DELIVERY"

    # Only the owner may select
    forbidden = await http_client.post(f"/requests/{request_id}/responses/{response_id}/select", headers=seller)
    assert forbidden.status_code == 403

    selected = await http_client.post(f"/requests/{request_id}/responses/{response_id}/select", headers=buyer)
    assert selected.status_code == 200
    selected_detail = selected.json()
    assert selected_detail["request"]["status"] == "CLOSED"
    assert [r["id"] for r in selected_detail["responses"] if r["isSelected"]] == [response_id]

    again = await http_client.post(f"/requests/{request_id}/responses/{response_id}/select", headers=buyer)
    assert again.status_code == 409

    late = await http_client.post(f"/requests/{request_id}/responses", headers=late_seller, json={
        "unitPrice": 1000, "deliveryDays": 1,
    })
    assert late.status_code == 409
    assert late.json()["code"] == "request_closed"

    late_view = (await http_client.get(f"/requests/{request_id}", headers=late_seller)).json()
    assert late_view["canSubmitQuote"] is False
    assert (await http_client.get("/requests", headers=late_seller)).json() == []

    my_quotes = (await http_client.get("/my-quotes", headers=seller)).json()
    assert len(my_quotes) == 1
    assert my_quotes[0]["isSelected"] is True
    assert my_quotes[0]["request"]["status"] == "CLOSED"

    prices = (await http_client.get("/prices")).json()
    assert prices == [
        {"category": "서보모터", "avgPrice": 460000, "changePercent": 0, "avgDeliveryDays": 9, "sampleCount": 2}
    ]


@pytest.mark.asyncio
async def test_login_logout_cycle(http_client: httpx.AsyncClient):
    await _register(http_client, "buyer@example.com", "대한정밀", "BUYER")

    wrong = await http_client.post("/auth/login", json={"email": "buyer@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"detail": "비밀번호가 올바르지 않습니다", "code": "INVALID_CREDENTIAL"}

    login = await http_client.post("/auth/login", json={"email": "buyer@example.com", "password": "secret123"})
    assert login.status_code == 200
    headers = {"Authorization": f"Bearer {login.json()['token']}"}

    me = await http_client.get("/auth/me", headers=headers)
    assert me.json()["company"] == "대한정밀"
    assert me.json()["userType"] == "BUYER"

    assert (await http_client.post("/auth/logout", headers=headers)).status_code == 204
    assert (await http_client.get("/auth/me", headers=headers)).status_code == 401


@pytest.mark.asyncio
async def test_register_with_taken_email(http_client: httpx.AsyncClient):
    await _register(http_client, "buyer@example.com", "대한정밀", "BUYER")

    response = await http_client.post("/auth/register", json={
        "email": "buyer@example.com",
        "password": "secret123",
        "passwordConfirm": "secret123",
        "name": "중복",
        "company": "중복상사",
    })

    assert response.status_code == 400
    assert response.json() == {"detail": "이미 사용 중인 이메일입니다", "code": "EMAIL_IN_USE"}
