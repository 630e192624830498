"""
Tests de la API HTTP (httpx contra la app ASGI)
"""
from datetime import timedelta
import uuid

from shared.auth.jwt_handler import create_access_token
from shared.database.models import Role, utcnow
from services.ticket_purchase.services.payment_gateway import OutcomeStatus

API = "/api/v1"


def event_payload(title="Festival Andino"):
    return {
        "title": title,
        "description": "Música en vivo",
        "location": "Santiago",
        "category": "musica",
        "starts_at": (utcnow() + timedelta(days=60)).isoformat(),
        "ticket_types": [
            {"name": "General", "price": "15000", "quantity": 100},
            {"name": "VIP", "price": "40000", "quantity": 10},
        ],
    }


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestEventModeration:
    """Envío y aprobación de eventos"""

    async def test_submit_approve_and_list(
        self, client, organizer, admin, buyer, notifier, auth_headers, invalidated_cache_patterns
    ):
        response = await client.post(f"{API}/events", json=event_payload(), headers=auth_headers(organizer))
        assert response.status_code == 201
        event = response.json()
        assert event["status"] == "pending"
        assert [tt["quantity_available"] for tt in event["ticket_types"]] == [100, 10]

        # Pendiente: no aparece en el catálogo ni se puede ver sin permisos
        listing = await client.get(f"{API}/events")
        assert event["id"] not in [e["id"] for e in listing.json()]
        assert (await client.get(f"{API}/events/{event['id']}")).status_code == 404
        assert (await client.get(f"{API}/events/{event['id']}", headers=auth_headers(organizer))).status_code == 200

        pending = await client.get(f"{API}/admin/events/pending", headers=auth_headers(admin))
        assert [e["id"] for e in pending.json()] == [event["id"]]

        response = await client.post(f"{API}/admin/events/{event['id']}/approve", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert invalidated_cache_patterns == ["events:list:*"]
        assert notifier.sent[-1][0] == organizer.email

        listing = await client.get(f"{API}/events")
        assert event["id"] in [e["id"] for e in listing.json()]

        response = await client.post(f"{API}/admin/events/{event['id']}/approve", headers=auth_headers(admin))
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_moderation"

    async def test_reject_with_reason(self, client, organizer, admin, auth_headers):
        event = (await client.post(f"{API}/events", json=event_payload(), headers=auth_headers(organizer))).json()

        response = await client.post(
            f"{API}/admin/events/{event['id']}/reject",
            json={"reason": "Falta información del recinto"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["rejection_reason"] == "Falta información del recinto"

    async def test_buyer_cannot_submit_or_moderate(self, client, buyer, conference, auth_headers):
        event, _ = conference

        response = await client.post(f"{API}/events", json=event_payload(), headers=auth_headers(buyer))
        assert response.status_code == 403

        response = await client.post(f"{API}/admin/events/{event.id}/approve", headers=auth_headers(buyer))
        assert response.status_code == 403

    async def test_duplicate_ticket_type_names(self, client, organizer, auth_headers):
        payload = event_payload()
        payload["ticket_types"][1]["name"] = "general"

        response = await client.post(f"{API}/events", json=payload, headers=auth_headers(organizer))

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    async def test_moderate_unknown_event(self, client, admin, auth_headers):
        response = await client.post(
            f"{API}/admin/events/00000000-0000-0000-0000-000000000000/approve",
            headers=auth_headers(admin),
        )

        assert response.status_code == 404


class TestCheckoutFlow:
    """Compra completa por HTTP"""

    async def test_purchase_cancel_flow(self, client, gateway, buyer, organizer, conference, auth_headers):
        event, _ = conference
        headers = auth_headers(buyer)

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 2},
            headers=headers,
        )
        assert response.status_code == 201
        checkout = response.json()
        assert checkout["status"] == "awaiting_payment"
        assert checkout["redirect_url"].startswith("https://pay.example.com/")

        response = await client.post(f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=headers)
        assert response.status_code == 402
        assert response.json()["error"] == "payment_not_completed"

        gateway.pay(checkout["session_id"])
        response = await client.post(f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=headers)
        assert response.status_code == 200
        confirmation = response.json()
        assert confirmation["status"] == "confirmed"

        again = await client.post(f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=headers)
        assert again.json() == confirmation

        tickets = (await client.get(f"{API}/tickets/me", headers=headers)).json()
        assert [(t["id"], t["status"], t["quantity"]) for t in tickets] == [(confirmation["ticket_id"], "booked", 2)]

        registrations = (await client.get(f"{API}/registrations/me", headers=headers)).json()
        assert registrations[0]["id"] == confirmation["registration_id"]
        assert [t["id"] for t in registrations[0]["tickets"]] == [confirmation["ticket_id"]]

        response = await client.get(f"{API}/events/{event.id}/registrations", headers=auth_headers(organizer))
        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [confirmation["registration_id"]]

        response = await client.post(f"{API}/tickets/{confirmation['ticket_id']}/cancel", headers=headers)
        assert response.status_code == 200
        assert response.json()["released_quantity"] == 2

        event_view = (await client.get(f"{API}/events/{event.id}")).json()
        general = next(tt for tt in event_view["ticket_types"] if tt["name"] == "General")
        assert general["quantity_available"] == 10

    async def test_transfer_by_email(self, client, gateway, buyer, other_buyer, conference, auth_headers):
        event, _ = conference
        headers = auth_headers(buyer)
        checkout = (await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "VIP", "quantity": 1},
            headers=headers,
        )).json()
        gateway.pay(checkout["session_id"])
        confirmation = (await client.post(
            f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=headers
        )).json()

        response = await client.post(
            f"{API}/tickets/{confirmation['ticket_id']}/transfer",
            json={"recipient_email": other_buyer.email},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["owner_id"] == str(other_buyer.id)
        received = (await client.get(f"{API}/tickets/me", headers=auth_headers(other_buyer))).json()
        assert [t["id"] for t in received] == [confirmation["ticket_id"]]

        response = await client.post(
            f"{API}/tickets/{confirmation['ticket_id']}/transfer",
            json={"recipient_email": "no-es-un-email"},
            headers=auth_headers(other_buyer),
        )
        assert response.status_code == 422

    async def test_buyer_abandons_checkout(self, client, buyer, conference, auth_headers):
        event, _ = conference
        headers = auth_headers(buyer)
        checkout = (await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "VIP", "quantity": 2},
            headers=headers,
        )).json()

        response = await client.post(f"{API}/checkout/sessions/{checkout['session_id']}/cancel", headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"


class TestCheckoutErrors:
    """Códigos de error estables"""

    async def test_quantity_must_be_integer(self, client, buyer, conference, auth_headers):
        event, _ = conference

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": "2"},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 422

    async def test_quantity_must_be_positive(self, client, buyer, conference, auth_headers):
        event, _ = conference

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 0},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    async def test_out_of_stock(self, client, buyer, conference, auth_headers):
        event, _ = conference

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "VIP", "quantity": 5},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "out_of_stock"

    async def test_unknown_ticket_type(self, client, buyer, conference, auth_headers):
        event, _ = conference

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "Platea", "quantity": 1},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "ticket_type_not_found"

    async def test_requires_authentication(self, client, conference):
        event, _ = conference

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
        )

        assert response.status_code in (401, 403)

    async def test_invalid_token(self, client, conference):
        response = await client.get(f"{API}/tickets/me", headers={"Authorization": "Bearer basura"})

        assert response.status_code == 401

    async def test_unknown_outcome_is_retryable(self, client, gateway, buyer, conference, auth_headers):
        event, _ = conference
        headers = auth_headers(buyer)
        checkout = (await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=headers,
        )).json()
        gateway.set_outcome(checkout["session_id"], OutcomeStatus.UNKNOWN)

        response = await client.post(f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=headers)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.json()["error"] == "payment_outcome_unknown"

    async def test_provider_unavailable(self, client, gateway, buyer, conference, auth_headers):
        event, _ = conference
        gateway.fail_open = True

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 503
        assert response.json()["error"] == "payment_provider_unavailable"

    async def test_cancel_ticket_of_other_user(self, client, gateway, buyer, other_buyer, conference, auth_headers):
        event, _ = conference
        checkout = (await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=auth_headers(buyer),
        )).json()
        gateway.pay(checkout["session_id"])
        confirmation = (await client.post(
            f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=auth_headers(buyer)
        )).json()

        response = await client.post(
            f"{API}/tickets/{confirmation['ticket_id']}/cancel", headers=auth_headers(other_buyer)
        )

        assert response.status_code == 403
        assert response.json()["error"] == "not_owner"

    async def test_other_organizer_cannot_see_registrations(self, client, conference, make_user, auth_headers):
        event, _ = conference
        rival = await make_user("rival@example.com", Role.ORGANIZER)

        response = await client.get(f"{API}/events/{event.id}/registrations", headers=auth_headers(rival))

        assert response.status_code == 403


class TestWebhook:
    """Notificaciones del proveedor"""

    async def test_webhook_confirms_paid_checkout(self, client, gateway, buyer, conference, auth_headers):
        event, _ = conference
        checkout = (await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=auth_headers(buyer),
        )).json()
        gateway.pay(checkout["session_id"])

        response = await client.post(f"{API}/checkout/webhook", json={"reference": checkout["checkout_id"]})

        assert response.status_code == 200
        assert response.json() == {"status": "confirmed", "checkout_id": checkout["checkout_id"]}

    async def test_webhook_with_bad_signature(self, client, gateway, conference):
        gateway.signature_valid = False

        response = await client.post(
            f"{API}/checkout/webhook",
            json={"reference": "x"},
            headers={"x-signature": "ts=1,v1=bad", "x-request-id": "req-1"},
        )

        assert response.status_code == 401

    async def test_webhook_with_invalid_body(self, client, conference):
        response = await client.post(
            f"{API}/checkout/webhook", content=b"no es json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}


class TestAdminCheckouts:
    """Expiración manual de checkouts"""

    async def test_expire_stale_summary(self, client, admin, auth_headers, conference):
        response = await client.post(f"{API}/admin/checkouts/expire-stale", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json() == {"examined": 0, "expired": 0, "confirmed": 0, "skipped": 0}

    async def test_expire_checkout(self, client, admin, buyer, conference, auth_headers):
        event, _ = conference
        checkout = (await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=auth_headers(buyer),
        )).json()

        response = await client.post(
            f"{API}/admin/checkouts/{checkout['session_id']}/expire", headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "expired"

    async def test_buyer_cannot_expire(self, client, buyer, auth_headers, conference):
        response = await client.post(f"{API}/admin/checkouts/expire-stale", headers=auth_headers(buyer))

        assert response.status_code == 403


class TestTokenOnlyUsers:
    """Usuarios que solo existen en el token de identidad"""

    def token_for(self, email, role=Role.USER):
        token = create_access_token({"sub": str(uuid.uuid4()), "email": email, "role": role})
        return {"Authorization": f"Bearer {token}"}

    async def test_new_buyer_can_checkout(self, client, gateway, conference):
        event, _ = conference
        headers = self.token_for("recien.llegada@example.com")

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=headers,
        )
        assert response.status_code == 201
        checkout = response.json()

        gateway.pay(checkout["session_id"])
        response = await client.post(f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=headers)
        assert response.status_code == 200

        tickets = (await client.get(f"{API}/tickets/me", headers=headers)).json()
        assert [t["status"] for t in tickets] == ["booked"]

    async def test_new_organizer_can_submit_event(self, client):
        headers = self.token_for("productora@example.com", Role.ORGANIZER)

        response = await client.post(f"{API}/events", json=event_payload(), headers=headers)

        assert response.status_code == 201
        assert response.json()["status"] == "pending"

    async def test_new_user_can_receive_transfer_after_first_request(
        self, client, gateway, buyer, conference, auth_headers
    ):
        event, _ = conference
        recipient_headers = self.token_for("amiga@example.com")
        assert (await client.get(f"{API}/tickets/me", headers=recipient_headers)).json() == []

        checkout = (await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=auth_headers(buyer),
        )).json()
        gateway.pay(checkout["session_id"])
        confirmation = (await client.post(
            f"{API}/checkout/confirm", json={"session_id": checkout["session_id"]}, headers=auth_headers(buyer)
        )).json()

        response = await client.post(
            f"{API}/tickets/{confirmation['ticket_id']}/transfer",
            json={"recipient_email": "amiga@example.com"},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 200
        received = (await client.get(f"{API}/tickets/me", headers=recipient_headers)).json()
        assert [t["id"] for t in received] == [confirmation["ticket_id"]]


class TestEventEditing:
    """Edición de eventos y de la capacidad de sus tipos de ticket"""

    async def test_owner_edits_pending_event(self, client, organizer, auth_headers):
        event = (await client.post(f"{API}/events", json=event_payload(), headers=auth_headers(organizer))).json()

        response = await client.patch(
            f"{API}/events/{event['id']}",
            json={
                "title": "Festival Andino 2026",
                "ticket_types": [
                    {"name": "vip", "quantity": 20},
                    {"name": "Palco", "price": "90000", "quantity": 4},
                ],
            },
            headers=auth_headers(organizer),
        )

        assert response.status_code == 200
        edited = response.json()
        assert edited["title"] == "Festival Andino 2026"
        assert edited["status"] == "pending"
        types = {tt["name"]: (tt["quantity_total"], tt["quantity_available"]) for tt in edited["ticket_types"]}
        assert types == {"General": (100, 100), "VIP": (20, 20), "Palco": (4, 4)}

    async def test_owner_cannot_edit_approved_event(self, client, organizer, conference, auth_headers):
        event, _ = conference

        response = await client.patch(
            f"{API}/events/{event.id}", json={"title": "Otro título"}, headers=auth_headers(organizer)
        )

        assert response.status_code == 409
        assert response.json()["error"] == "event_not_editable"

    async def test_other_organizer_cannot_edit(self, client, make_user, auth_headers, organizer):
        event = (await client.post(f"{API}/events", json=event_payload(), headers=auth_headers(organizer))).json()
        rival = await make_user("rival@example.com", Role.ORGANIZER)

        response = await client.patch(
            f"{API}/events/{event['id']}", json={"title": "Robado"}, headers=auth_headers(rival)
        )

        assert response.status_code == 403

    async def test_admin_edits_approved_event_keeping_sold_units(
        self, client, admin, buyer, conference, auth_headers, invalidated_cache_patterns
    ):
        event, _ = conference
        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 3},
            headers=auth_headers(buyer),
        )
        assert response.status_code == 201

        response = await client.patch(
            f"{API}/events/{event.id}",
            json={"ticket_types": [{"name": "General", "quantity": 2}]},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

        response = await client.patch(
            f"{API}/events/{event.id}",
            json={"ticket_types": [{"name": "General", "price": "12000", "quantity": 5}]},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        general = next(tt for tt in response.json()["ticket_types"] if tt["name"] == "General")
        assert (general["quantity_total"], general["quantity_available"]) == (5, 2)
        assert general["price"] in ("12000", "12000.00")
        assert invalidated_cache_patterns == ["events:list:*"]

    async def test_new_ticket_type_requires_price_and_capacity(self, client, organizer, auth_headers):
        event = (await client.post(f"{API}/events", json=event_payload(), headers=auth_headers(organizer))).json()

        response = await client.patch(
            f"{API}/events/{event['id']}",
            json={"title": "Cambiado", "ticket_types": [{"name": "Palco"}]},
            headers=auth_headers(organizer),
        )

        assert response.status_code == 400
        unchanged = (await client.get(f"{API}/events/{event['id']}", headers=auth_headers(organizer))).json()
        assert unchanged["title"] == "Festival Andino"


class TestEventDeletion:
    """Borrado lógico de eventos"""

    async def test_owner_deletes_event(self, client, organizer, buyer, conference, auth_headers, invalidated_cache_patterns):
        event, _ = conference

        response = await client.delete(f"{API}/events/{event.id}", headers=auth_headers(organizer))
        assert response.status_code == 204
        assert invalidated_cache_patterns == ["events:list:*"]

        assert str(event.id) not in [e["id"] for e in (await client.get(f"{API}/events")).json()]
        assert (await client.get(f"{API}/events/{event.id}")).status_code == 404
        mine = (await client.get(f"{API}/events/mine", headers=auth_headers(organizer))).json()
        assert mine == []

        response = await client.post(
            f"{API}/checkout/sessions",
            json={"event_id": str(event.id), "ticket_type": "General", "quantity": 1},
            headers=auth_headers(buyer),
        )
        assert response.status_code == 404
        assert response.json()["error"] == "event_not_found"

        response = await client.delete(f"{API}/events/{event.id}", headers=auth_headers(organizer))
        assert response.status_code == 404

    async def test_other_organizer_cannot_delete(self, client, conference, make_user, auth_headers):
        event, _ = conference
        rival = await make_user("rival@example.com", Role.ORGANIZER)

        response = await client.delete(f"{API}/events/{event.id}", headers=auth_headers(rival))

        assert response.status_code == 403
        assert (await client.get(f"{API}/events/{event.id}")).status_code == 200

    async def test_admin_deletes_any_event(self, client, admin, conference, auth_headers):
        event, _ = conference

        response = await client.delete(f"{API}/events/{event.id}", headers=auth_headers(admin))

        assert response.status_code == 204
        listing = (await client.get(f"{API}/admin/events", headers=auth_headers(admin))).json()
        assert str(event.id) not in [e["id"] for e in listing]


class TestAdminEvents:
    """Eventos creados y listados por un admin"""

    async def test_admin_event_is_approved_on_creation(self, client, admin, auth_headers, invalidated_cache_patterns):
        response = await client.post(f"{API}/events", json=event_payload("Gala"), headers=auth_headers(admin))

        assert response.status_code == 201
        assert response.json()["status"] == "approved"
        assert invalidated_cache_patterns == ["events:list:*"]
        assert response.json()["id"] in [e["id"] for e in (await client.get(f"{API}/events")).json()]

    async def test_admin_lists_events_in_any_status(self, client, admin, organizer, conference, auth_headers):
        event, _ = conference
        pending = (await client.post(f"{API}/events", json=event_payload(), headers=auth_headers(organizer))).json()

        everything = (await client.get(f"{API}/admin/events", headers=auth_headers(admin))).json()
        assert {e["id"] for e in everything} == {str(event.id), pending["id"]}

        only_pending = (await client.get(f"{API}/admin/events?status=pending", headers=auth_headers(admin))).json()
        assert [e["id"] for e in only_pending] == [pending["id"]]

        response = await client.get(f"{API}/admin/events?status=borrador", headers=auth_headers(admin))
        assert response.status_code == 422

    async def test_organizer_cannot_list_all(self, client, organizer, auth_headers):
        response = await client.get(f"{API}/admin/events", headers=auth_headers(organizer))

        assert response.status_code == 403


class TestCatalogueFilters:
    """Filtros y orden por precio del catálogo"""

    async def given_catalogue(self, organizer, conference, make_event):
        conf, _ = conference
        jazz, _ = await make_event(organizer.id, title="Jazz", ticket_types=[("General", "5000", 50)])
        opera, _ = await make_event(organizer.id, title="Ópera", ticket_types=[("Platea", "40000", 20)])
        return {"conf": str(conf.id), "jazz": str(jazz.id), "opera": str(opera.id)}

    async def test_price_range(self, client, organizer, conference, make_event):
        ids = await self.given_catalogue(organizer, conference, make_event)

        expensive = (await client.get(f"{API}/events", params={"min_price": "20000"})).json()
        assert {e["id"] for e in expensive} == {ids["conf"], ids["opera"]}

        cheap = (await client.get(f"{API}/events", params={"max_price": "8000"})).json()
        assert [e["id"] for e in cheap] == [ids["jazz"]]

        middle = (await client.get(f"{API}/events", params={"min_price": "9000", "max_price": "12000"})).json()
        assert [e["id"] for e in middle] == [ids["conf"]]

    async def test_sort_by_price(self, client, organizer, conference, make_event):
        ids = await self.given_catalogue(organizer, conference, make_event)

        ascending = (await client.get(f"{API}/events", params={"sort_by": "price_asc"})).json()
        assert [e["id"] for e in ascending] == [ids["jazz"], ids["conf"], ids["opera"]]

        descending = (await client.get(f"{API}/events", params={"sort_by": "price_desc"})).json()
        assert [e["id"] for e in descending] == [ids["opera"], ids["conf"], ids["jazz"]]

    async def test_invalid_filters(self, client, conference):
        response = await client.get(f"{API}/events", params={"min_price": "100", "max_price": "50"})
        assert response.status_code == 400

        response = await client.get(f"{API}/events", params={"sort_by": "popularidad"})
        assert response.status_code == 422
