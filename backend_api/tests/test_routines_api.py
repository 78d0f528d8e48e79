import unittest

from sqlmodel import Session

from planner_api.models import Routine

from support import ApiTestCase


def payload(title="Gym", day=1, start="09:00", end="10:00", **extra):
    body = {"title": title, "day_of_week": day, "start_time": start, "end_time": end}
    body.update(extra)
    return body


class RoutineCrudTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers = self.signup()

    def create(self, headers=None, **kwargs):
        resp = self.client.post("/api/routines", json=payload(**kwargs), headers=headers or self.headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()

    def test_requires_authentication(self):
        self.assertEqual(self.client.get("/api/routines").status_code, 401)
        resp = self.client.get("/api/routines", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(resp.status_code, 401)

    def test_create_normalizes_times(self):
        body = self.create(start="9:00", end="9:45", category="health")
        self.assertEqual((body["start_time"], body["end_time"]), ("09:00", "09:45"))
        self.assertTrue(body["is_recurring"])

    def test_rejects_end_before_start(self):
        for start, end in (("10:00", "09:00"), ("09:00", "09:00")):
            with self.subTest(start=start, end=end):
                resp = self.client.post("/api/routines", json=payload(start=start, end=end), headers=self.headers)
                self.assertEqual(resp.status_code, 422)

    def test_rejects_malformed_input(self):
        for body in (payload(start="25:00"), payload(end="9am"), payload(day=7), payload(title="   ")):
            with self.subTest(body=body):
                resp = self.client.post("/api/routines", json=body, headers=self.headers)
                self.assertEqual(resp.status_code, 422)

    def test_list_is_ordered_by_day_and_start(self):
        self.create(title="late", day=2, start="18:00", end="19:00")
        self.create(title="early", day=2, start="07:00", end="08:00")
        self.create(title="sunday", day=0, start="20:00", end="21:00")
        titles = [r["title"] for r in self.client.get("/api/routines", headers=self.headers).json()]
        self.assertEqual(titles, ["sunday", "early", "late"])

    def test_update_checks_merged_times(self):
        rid = self.create()["id"]
        resp = self.client.put(f"/api/routines/{rid}", json={"end_time": "08:00"}, headers=self.headers)
        self.assertEqual(resp.status_code, 422)
        unchanged = self.client.get("/api/routines", headers=self.headers).json()[0]
        self.assertEqual(unchanged["end_time"], "10:00")

        resp = self.client.put(f"/api/routines/{rid}", json={"end_time": "11:30", "title": "Long gym"}, headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual((resp.json()["title"], resp.json()["end_time"]), ("Long gym", "11:30"))

    def test_update_rejects_blank_title(self):
        rid = self.create()["id"]
        resp = self.client.put(f"/api/routines/{rid}", json={"title": "   "}, headers=self.headers)
        self.assertEqual(resp.status_code, 422)
        resp = self.client.put(f"/api/routines/{rid}", json={"title": "  Swim  "}, headers=self.headers)
        self.assertEqual(resp.json()["title"], "Swim")

    def test_update_with_null_clears_description_and_category(self):
        rid = self.create(description="legs", category="health")["id"]
        resp = self.client.put(
            f"/api/routines/{rid}", json={"description": None, "category": None, "start_time": None}, headers=self.headers
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertEqual((body["description"], body["category"], body["start_time"]), (None, None, "09:00"))

    def test_delete(self):
        rid = self.create()["id"]
        resp = self.client.delete(f"/api/routines/{rid}", headers=self.headers)
        self.assertEqual(resp.json(), {"success": True})
        self.assertEqual(self.client.delete(f"/api/routines/{rid}", headers=self.headers).status_code, 404)

    def test_routines_are_scoped_to_their_owner(self):
        rid = self.create()["id"]
        other = self.signup(email="bob@planner.io")
        self.assertEqual(self.client.get("/api/routines", headers=other).json(), [])
        self.assertEqual(self.client.put(f"/api/routines/{rid}", json={"title": "x"}, headers=other).status_code, 404)
        self.assertEqual(self.client.delete(f"/api/routines/{rid}", headers=other).status_code, 404)
        self.assertEqual(self.client.get(f"/api/routines/{rid}/neighbor?key=up", headers=other).status_code, 404)

    def test_summary(self):
        self.create(day=1, start="09:00", end="10:30")
        self.create(day=3, start="13:00", end="14:30", is_recurring=False)
        body = self.client.get("/api/routines/summary", headers=self.headers).json()
        self.assertEqual(body, {"total_routines": 2, "recurring": 1, "active_days": 2, "weekly_hours": 3})


class RoutineLayoutApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers = self.signup()

    def create(self, **kwargs):
        return self.client.post("/api/routines", json=payload(**kwargs), headers=self.headers).json()["id"]

    def layout(self, **params):
        resp = self.client.get("/api/routines/layout", params=params, headers=self.headers)
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()

    def test_three_overlapping_routines_collapse_into_a_marker(self):
        ids = [self.create(title=t) for t in ("Workout", "Standup", "Shift")]
        body = self.layout(start_hour=9, end_hour=10)
        self.assertEqual(len(body["days"]), 7)
        slot = body["days"][1]["slots"][0]
        self.assertEqual((slot["slot_start"], slot["slot_end"]), ("09:00", "10:00"))
        blocks = slot["routines"]
        self.assertEqual([b["routine_id"] for b in blocks], ids)
        self.assertEqual([b["should_show_more"] for b in blocks], [False, False, True])
        self.assertEqual(blocks[2]["more_count"], 1)
        self.assertEqual(blocks[0]["title"], "Workout")
        self.assertEqual(blocks[0]["width_px"], 44)

    def test_column_width_drives_geometry(self):
        self.create()
        block = self.layout(start_hour=9, end_hour=10, column_width_px=200)["days"][1]["slots"][0]["routines"][0]
        self.assertEqual((block["left_offset_px"], block["width_px"], block["height_px"]), (8, 184, 76))

    def test_stored_invalid_routine_is_excluded(self):
        good = self.create()
        with Session(self.engine) as session:
            bad = Routine(
                user_id=self.user_id(self.headers), title="Broken", day_of_week=1, start_time="10:00", end_time="09:00"
            )
            session.add(bad)
            session.commit()
            bad_id = bad.id
        with self.assertLogs("planner_api.layout", level="WARNING"):
            body = self.layout(start_hour=9, end_hour=11)
        self.assertEqual(body["excluded_ids"], [bad_id])
        blocks = body["days"][1]["slots"][0]["routines"]
        self.assertEqual([b["routine_id"] for b in blocks], [good])

    def test_layout_reflects_edits(self):
        rid = self.create(start="09:00", end="10:00")
        self.layout(start_hour=9, end_hour=10)
        self.client.put(f"/api/routines/{rid}", json={"start_time": "09:30", "title": "Moved"}, headers=self.headers)
        block = self.layout(start_hour=9, end_hour=10)["days"][1]["slots"][0]["routines"][0]
        self.assertEqual((block["title"], block["top_offset_px"]), ("Moved", 38))

    def test_invalid_hour_range(self):
        resp = self.client.get("/api/routines/layout", params={"start_hour": 12, "end_hour": 9}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)

    def test_navigation_map_and_neighbors(self):
        first = self.create(day=1, start="09:00", end="10:00")
        second = self.create(day=1, start="11:00", end="12:00")
        tuesday = self.create(day=2, start="10:00", end="11:00")
        body = self.layout()
        self.assertEqual(body["navigation"], {"1:540": first, "1:660": second, "2:600": tuesday})

        def neighbor(rid, key):
            return self.client.get(f"/api/routines/{rid}/neighbor", params={"key": key}, headers=self.headers)

        self.assertEqual(neighbor(first, "down").json()["neighbor_id"], second)
        self.assertEqual(neighbor(first, "ArrowRight").json()["neighbor_id"], tuesday)
        self.assertIsNone(neighbor(tuesday, "right").json()["neighbor_id"])
        self.assertEqual(neighbor(first, "sideways").status_code, 422)


if __name__ == "__main__":
    unittest.main()
