import pytest

import webapp
from api import Api
from conftest import make_service


@pytest.fixture()
def api(channel, inventory):
    return Api(service=make_service(channel, inventory))


@pytest.fixture()
def client(api):
    webapp.set_api_instance(api)
    webapp.flask_app.config["TESTING"] = True
    with webapp.flask_app.test_client() as client:
        yield client
    webapp.set_api_instance(None)


@pytest.fixture()
def form(articles, transaction):
    return {
        "company": "ACME",
        "transaction": transaction.to_dict(),
        "articles": [a.to_dict() for a in articles.values()],
    }


def _boxes(client, form):
    return client.post("/api/boxes/derive", json={"articles": form["articles"]}).get_json()["boxes"]


class TestRoutes:
    def test_not_initialised(self):
        webapp.set_api_instance(None)
        with webapp.flask_app.test_client() as client:
            resp = client.get("/api/printers")
        assert resp.status_code == 500

    def test_printers(self, client):
        resp = client.get("/api/printers?refresh=0")

        assert resp.status_code == 200
        assert resp.get_json()["selected_printer"] == "Label-1"

    def test_select_printer(self, client):
        assert client.post("/api/printers/select", json={"printer_name": "Label-1"}).status_code == 200
        assert client.post("/api/printers/select", json={"printer_name": "Nope"}).status_code == 400
        assert client.post("/api/printers/select", json={}).status_code == 400

    def test_derive_boxes(self, client, form):
        assert len(_boxes(client, form)) == 5

    def test_remove_box(self, client, form):
        boxes = _boxes(client, form)

        resp = client.post("/api/boxes/remove", json={})
        assert resp.status_code == 400

        resp = client.post("/api/boxes/remove", json={
            "box_id": boxes[0]["id"], "boxes": boxes, "articles": form["articles"],
        })
        assert resp.status_code == 200
        assert len(resp.get_json()["boxes"]) == 4

    def test_update_box(self, client, form):
        boxes = _boxes(client, form)
        resp = client.post("/api/boxes/update", json={
            "box_id": boxes[0]["id"], "boxes": boxes, "changes": {"lot_number": "L-1"},
        })

        assert resp.status_code == 200
        assert resp.get_json()["boxes"][0]["lot_number"] == "L-1"

    def test_preview_png(self, client, form):
        box = _boxes(client, form)[0]
        resp = client.post("/api/labels/preview", json={**form, "box": box})

        assert resp.status_code == 200
        assert resp.mimetype == "image/png"
        assert resp.data[:8] == b"\x89PNG\r\n\x1a\n"

    def test_preview_json(self, client, form):
        box = _boxes(client, form)[0]
        resp = client.post("/api/labels/preview?format=json", json={**form, "box": box, "max_width_px": 200})

        assert resp.status_code == 200
        assert resp.get_json()["image_base64"]

    def test_preview_invalid(self, client, form):
        box = _boxes(client, form)[0]
        resp = client.post("/api/labels/preview", json={**form, "company": "", "box": box})

        assert resp.status_code == 400
        assert "Firma fehlt" in resp.get_json()["message"]

    def test_print_box(self, client, form):
        boxes = _boxes(client, form)
        resp = client.post("/api/print/box", json={**form, "boxes": boxes, "box_id": boxes[0]["id"]})

        assert resp.status_code == 200
        assert resp.get_json()["ok"]

    def test_print_box_unreadable_answer_is_not_500(self, client, form, channel, monkeypatch):
        def broken_poll(job_id):
            raise ValueError("Expecting value: line 1 column 1")

        monkeypatch.setattr(channel, "poll", broken_poll)
        boxes = _boxes(client, form)
        resp = client.post("/api/print/box", json={**form, "boxes": boxes, "box_id": boxes[0]["id"]})
        data = resp.get_json()

        assert resp.status_code == 400
        assert not data["ok"]
        assert "Unerwarteter Fehler" in data["message"]

    def test_print_batch_partial_failure_is_200(self, client, form, channel):
        channel.fail_on_submit = {2}
        boxes = _boxes(client, form)

        resp = client.post("/api/print/batch", json={**form, "boxes": boxes})
        data = resp.get_json()

        assert resp.status_code == 200
        assert not data["ok"]
        assert data["reprint_boxes"] == [2]

    def test_print_batch_without_printer_is_400(self, client, api, form):
        api.clear_printer()
        boxes = _boxes(client, form)

        assert client.post("/api/print/batch", json={**form, "boxes": boxes}).status_code == 400

    def test_unknown_job(self, client):
        assert client.get("/api/print/job/nope").status_code == 404
