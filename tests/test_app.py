import unittest
from datetime import datetime

from fakes import InMemoryStore

from schedule_pro.app import app

NOW = datetime(2024, 1, 15, 12, 0)

RECORDS = [
    {"id": "standup", "title": "Standup", "start": "2024-01-15T09:00:00", "end": "2024-01-15T09:30:00",
     "organizerName": "Alice"},
    {"id": "overnight", "title": "Deploy", "start": "2024-01-16T23:00:00", "end": "2024-01-17T01:00:00"},
    {"id": "broken", "title": "Broken", "start": None, "end": "2024-01-16T10:00:00"},
]

USERS = [
    {"id": "u1", "userName": "Alice"},
    {"id": "u2", "userName": "Albert"},
    {"id": "u3", "userName": "Bob"},
]


class AppTest(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore(RECORDS, USERS)
        self.tokens = []
        app.config['TESTING'] = True
        app.config['CLOCK'] = lambda: NOW
        app.config['STORE_FACTORY'] = self.store_factory
        self.client = app.test_client()
        self.headers = {"Authorization": "Bearer test-token"}

    def store_factory(self, base_url, token=None):
        self.tokens.append(token)
        return self.store

    def test_requires_token(self):
        response = self.client.get("/calendar/u1")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json(), {"error": "Authentication required"})

    def test_token_is_relayed_to_store(self):
        self.client.get("/calendar/u1", headers=self.headers)
        self.assertEqual(self.tokens, ["test-token"])

    def test_day_view_defaults_to_today(self):
        response = self.client.get("/calendar/u1", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["view"], "day")
        self.assertEqual(body["date"], "2024-01-15")
        self.assertEqual(body["label"], "Monday 15 January 2024")
        self.assertEqual(body["window"], {"start": "2024-01-15T00:00:00", "end": "2024-01-15T23:59:59"})
        grid = body["grid"]
        self.assertEqual(len(grid["slots"]), 49)
        self.assertEqual(grid["slotHeight"], 48)
        [column] = grid["columns"]
        [standup] = column["appointments"]
        self.assertEqual(standup["id"], "standup")
        self.assertEqual(standup["top"], 18 * 48)
        self.assertEqual(standup["height"], 48)
        self.assertEqual(standup["status"], "completed")

    def test_week_view(self):
        response = self.client.get("/calendar/u1?view=week&date=2024-01-17", headers=self.headers)
        body = response.get_json()
        self.assertEqual(body["label"], "14 Jan 2024 - 20 Jan 2024")
        columns = body["grid"]["columns"]
        self.assertEqual([c["date"] for c in columns][0], "2024-01-14")
        self.assertEqual(body["grid"]["slotHeight"], 28)
        tuesday, wednesday = columns[2], columns[3]
        self.assertEqual(tuesday["appointments"][0]["renderEnd"], "2024-01-16T23:59:59")
        self.assertEqual(wednesday["appointments"][0]["renderStart"], "2024-01-17T00:00:00")
        self.assertEqual(wednesday["appointments"][0]["height"], 2 * 28)
        self.assertEqual([a["id"] for a in body["sidebar"]], ["standup", "overnight"])
        self.assertEqual([a["status"] for a in body["sidebar"]], ["completed", "upcoming"])

    def test_month_view(self):
        response = self.client.get("/calendar/u1?view=month&date=2024-01-17", headers=self.headers)
        body = response.get_json()
        self.assertEqual(body["label"], "January 2024")
        cells = body["grid"]["cells"]
        self.assertEqual(len(cells), 42)
        self.assertEqual(body["grid"]["weekdays"][0], "Sun")
        by_date = {cell["date"]: cell for cell in cells}
        self.assertEqual(by_date["2024-01-15"]["appointments"][0]["status"], "completed")
        self.assertTrue(by_date["2024-01-15"]["past"])
        self.assertTrue(by_date["2023-12-31"]["muted"])
        self.assertEqual(by_date["2024-01-17"]["more"], 0)

    def test_bad_view_arguments(self):
        response = self.client.get("/calendar/u1?view=year", headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json(), {"error": "Unknown view: year"})
        response = self.client.get("/calendar/u1?date=15-01-2024", headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_query_failure_shows_empty_calendar(self):
        self.store.failing.add("query_appointments")
        response = self.client.get("/calendar/u1", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["sidebar"], [])

    def test_navigate(self):
        response = self.client.get("/calendar/u1/navigate?view=week&date=2024-01-17&direction=prev",
                                   headers=self.headers)
        self.assertEqual(response.get_json()["date"], "2024-01-10")
        response = self.client.get("/calendar/u1/navigate?view=month&date=2024-01-31", headers=self.headers)
        self.assertEqual(response.get_json()["date"], "2024-02-29")
        response = self.client.get("/calendar/u1/navigate?direction=sideways", headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_new_appointment_defaults(self):
        response = self.client.get("/calendar/u1/new?view=month&date=2024-01-15", headers=self.headers)
        self.assertEqual(response.get_json(), {"start": "2024-01-15T12:00:00", "end": "2024-01-15T12:30:00",
                                               "fromView": "month"})

    def test_create_appointment(self):
        draft = {"title": "Review", "start": "2024-01-16T10:00", "end": "2024-01-16T11:00",
                 "participantIds": ["u2"], "recurrenceType": "none"}
        response = self.client.post("/appointments/u1?view=day&date=2024-01-16", json=draft, headers=self.headers)
        self.assertEqual(response.status_code, 201)
        body = response.get_json()
        created_id = body["appointment"]["id"]
        self.assertEqual(body["appointment"]["organizerId"], "u1")
        self.assertEqual([a["id"] for a in body["grid"]["columns"][0]["appointments"]], ["overnight", created_id])

    def test_create_from_month_switches_to_day(self):
        draft = {"title": "Review", "start": "2024-01-25T10:00", "end": "2024-01-25T11:00", "fromView": "month"}
        response = self.client.post("/appointments/u1?view=month&date=2024-01-15", json=draft, headers=self.headers)
        body = response.get_json()
        self.assertEqual((body["view"], body["date"]), ("day", "2024-01-25"))

    def test_create_validation_error(self):
        draft = {"title": "Too late", "start": "2024-01-15T10:00", "end": "2024-01-15T11:00"}
        response = self.client.post("/appointments/u1", json=draft, headers=self.headers)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json(), {"error": "Start time must be in the future"})
        self.assertFalse([c for c in self.store.calls if c[0] == "create_appointment"])

    def test_create_store_failure(self):
        self.store.failing.add("create_appointment")
        draft = {"title": "Review", "start": "2024-01-16T10:00", "end": "2024-01-16T11:00"}
        response = self.client.post("/appointments/u1", json=draft, headers=self.headers)
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.get_json(), {"error": "Failed to create_appointment"})

    def test_update_appointment(self):
        draft = {"id": "ignored", "title": "Deploy v2", "start": "2024-01-17T22:00", "end": "2024-01-17T23:30"}
        response = self.client.put("/appointments/u1/overnight?view=week&date=2024-01-17",
                                   json=draft, headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["appointment"]["id"], "overnight")
        self.assertEqual(body["appointment"]["title"], "Deploy v2")
        self.assertEqual(self.store.records["overnight"]["end"], "2024-01-17T23:30:00")

    def test_update_unknown_appointment(self):
        draft = {"title": "Ghost", "start": "2024-01-17T22:00", "end": "2024-01-17T23:30"}
        response = self.client.put("/appointments/u1/ghost", json=draft, headers=self.headers)
        self.assertEqual(response.status_code, 502)

    def test_delete_appointment(self):
        response = self.client.delete("/appointments/u1/standup", headers=self.headers)
        self.assertEqual(response.status_code, 204)
        self.assertNotIn("standup", self.store.records)

    def test_suggest_users(self):
        response = self.client.get("/users/suggest?q=al&selected=u1", headers=self.headers)
        self.assertEqual(response.get_json(), [{"id": "u2", "userName": "Albert"}])
        response = self.client.get("/users/suggest?q=", headers=self.headers)
        self.assertEqual(response.get_json(), [])

    def test_non_object_body_is_rejected(self):
        response = self.client.put("/appointments/u1/overnight", json=[1], headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json(), {"error": "Expected a JSON object"})
        response = self.client.post("/appointments/u1", json="Review", headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertFalse([c for c in self.store.calls if c[0] in ("create_appointment", "update_appointment")])

    def test_non_text_fields_are_validation_errors(self):
        draft = {"title": 123, "start": "2024-01-16T10:00", "end": "2024-01-16T11:00"}
        response = self.client.post("/appointments/u1", json=draft, headers=self.headers)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json(), {"error": "Enter title"})
        draft = {"title": "Review", "description": 5, "start": "2024-01-16T10:00", "end": "2024-01-16T11:00"}
        response = self.client.post("/appointments/u1", json=draft, headers=self.headers)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json(), {"error": "Description must be text"})

    def test_suggest_excludes_selected_numeric_ids(self):
        self.store.users = [{"id": 1, "userName": "Alice"}, {"id": 2, "userName": "Albert"}]
        response = self.client.get("/users/suggest?q=al&selected=1", headers=self.headers)
        self.assertEqual(response.get_json(), [{"id": 2, "userName": "Albert"}])

    def test_past_column_matches_between_day_and_week(self):
        response = self.client.get("/calendar/u1?view=day&date=2024-01-10", headers=self.headers)
        [column] = response.get_json()["grid"]["columns"]
        self.assertTrue(column["past"])
        self.assertTrue(all(column["pastSlots"]))
        response = self.client.get("/calendar/u1?view=week&date=2024-01-10", headers=self.headers)
        by_date = {c["date"]: c for c in response.get_json()["grid"]["columns"]}
        self.assertTrue(by_date["2024-01-10"]["past"])
        self.assertEqual(by_date["2024-01-10"]["pastSlots"], column["pastSlots"])

    def test_past_slots_of_today(self):
        response = self.client.get("/calendar/u1", headers=self.headers)
        [column] = response.get_json()["grid"]["columns"]
        self.assertFalse(column["past"])
        self.assertEqual(len(column["pastSlots"]), 48)
        # 11:30 has started, 12:00 starts exactly now and is still bookable
        self.assertTrue(column["pastSlots"][23])
        self.assertFalse(column["pastSlots"][24])

    def test_slot_appointment(self):
        response = self.client.get("/calendar/u1/slot?date=2024-01-15&slot=25", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"start": "2024-01-15T12:30:00", "end": "2024-01-15T13:00:00",
                                               "fromView": "day"})
        response = self.client.get("/calendar/u1/slot?date=2024-01-15&slot=20", headers=self.headers)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json(), {"error": "Slot is in the past"})
        for bad in ("48", "-1", "x", ""):
            response = self.client.get(f"/calendar/u1/slot?date=2024-01-15&slot={bad}", headers=self.headers)
            self.assertEqual(response.status_code, 400)

    def test_unknown_route(self):
        response = self.client.get("/nowhere")
        self.assertEqual(response.status_code, 404)
        self.assertIn("error", response.get_json())


if __name__ == '__main__':
    unittest.main()
