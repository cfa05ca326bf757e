import datetime as dt
import unittest

from fastapi.testclient import TestClient

from picnic_planner.config import Settings
from picnic_planner.data_sources import CallableWeatherProvider
from picnic_planner.errors import ProviderError
from picnic_planner.kv_store import InMemoryKeyValueStore
from picnic_planner.main import create_app
from picnic_planner.measurements import ForecastDay, GeocodeResult, Measurement
from picnic_planner.services import build_services

START = dt.date(2024, 6, 1)
END = dt.date(2024, 6, 3)

# 30 °C (86 °F) is the only reading outside the default window.
WARM = Measurement(
    temperature_max=30.0,
    temperature_min=18.0,
    precipitation_sum=0.0,
    wind_speed_max=8.0,
    relative_humidity_mean=50.0,
)


class FakeProvider:
    def __init__(self):
        self.forecast_error = None
        self.forecast_calls = 0
        self.geocode_calls = []

    def daily_forecast(self, latitude, longitude, *, start_date, end_date, timezone="auto"):
        self.forecast_calls += 1
        if self.forecast_error is not None:
            raise self.forecast_error
        days = []
        day = start_date
        while day <= end_date:
            days.append(ForecastDay(date=day, measurement=WARM))
            day += dt.timedelta(days=1)
        return days

    def historical_day(self, latitude, longitude, day, *, timezone="auto"):
        return WARM

    def geocode(self, query, *, count=5):
        self.geocode_calls.append((query, count))
        return [GeocodeResult(name="Oslo", latitude=59.91, longitude=10.75, country="Norway",
                              region="Oslo", timezone="Europe/Oslo")]


def _outlook_params(**overrides):
    params = {"latitude": 40.0, "longitude": -74.0, "timezone": "America/New_York",
              "start": START.isoformat(), "end": END.isoformat()}
    params.update(overrides)
    return params


class TestApi(unittest.TestCase):
    def setUp(self):
        self.fake = FakeProvider()
        provider = CallableWeatherProvider(
            daily_forecast=self.fake.daily_forecast,
            historical_day=self.fake.historical_day,
            geocoder=self.fake.geocode,
        )
        self.services = build_services(Settings(), provider=provider, store=InMemoryKeyValueStore())
        self.client = TestClient(create_app(self.services))

    def tearDown(self):
        self.services.close()

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok", "cache_version": "v3"})

    def test_outlook_grades_each_day(self):
        resp = self.client.get("/v1/outlook", params=_outlook_params())
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual([d["date"] for d in body["days"]], ["2024-06-01", "2024-06-02", "2024-06-03"])
        self.assertTrue(all(d["grade"] == "fair" for d in body["days"]))
        first = body["days"][0]
        self.assertEqual(first["measurement"]["temperature_max"], 30.0)
        self.assertEqual(first["display"]["temperature_max"], "86°F")
        self.assertEqual(first["display"]["wind_speed_max"], "5 mph")
        self.assertEqual(body["units"], {"temperature": "F", "wind": "mph", "precipitation": "in"})
        checks = first["checks"]
        self.assertFalse(checks["temperature"]["in_range"])
        self.assertEqual(checks["temperature"]["reason"], "Temperature 30.0 above 27.8")
        self.assertTrue(all(checks[dim]["in_range"] for dim in ("wind", "precipitation", "humidity")))

    def test_outlook_is_served_from_cache(self):
        self.client.get("/v1/outlook", params=_outlook_params())
        self.client.get("/v1/outlook", params=_outlook_params())
        self.assertEqual(self.fake.forecast_calls, 1)

    def test_outlook_rejects_bad_input(self):
        resp = self.client.get("/v1/outlook", params=_outlook_params(timezone="Mars/Olympus"))
        self.assertEqual(resp.status_code, 400)
        resp = self.client.get("/v1/outlook", params=_outlook_params(start="2024-06-03", end="2024-06-01"))
        self.assertEqual(resp.status_code, 400)
        resp = self.client.get("/v1/outlook", params=_outlook_params(latitude=123))
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(self.fake.forecast_calls, 0)

    def test_provider_failure_is_502(self):
        self.fake.forecast_error = ProviderError("Open-Meteo forecast request failed with status 503",
                                                 status_code=503)
        resp = self.client.get("/v1/outlook", params=_outlook_params())
        self.assertEqual(resp.status_code, 502)
        self.assertIn("503", resp.json()["detail"])

    def test_preferences_defaults_save_and_reset(self):
        resp = self.client.get("/v1/preferences")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["temp_min"], 64.0)

        resp = self.client.put("/v1/preferences", json={"temp_max": 90, "units": {"temperature": "°F"}})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["temp_max"], 90.0)
        self.assertEqual(self.client.get("/v1/preferences").json()["temp_max"], 90.0)

        resp = self.client.post("/v1/preferences/reset")
        self.assertEqual(resp.json()["temp_max"], 82.0)

    def test_unit_switch_keeps_grades(self):
        self.client.put("/v1/preferences", json={"temp_max": 90})
        before = self.client.get("/v1/outlook", params=_outlook_params()).json()
        self.assertEqual({d["grade"] for d in before["days"]}, {"ideal"})

        resp = self.client.put("/v1/preferences/units",
                               json={"temperature": "C", "wind": "kmh", "precipitation": "mm"})
        self.assertEqual(resp.status_code, 200)
        self.assertAlmostEqual(resp.json()["temp_max"], 32.2222, places=3)
        self.assertAlmostEqual(resp.json()["wind_max"], 19.312128)

        after = self.client.get("/v1/outlook", params=_outlook_params()).json()
        self.assertEqual({d["grade"] for d in after["days"]}, {"ideal"})
        self.assertEqual(after["days"][0]["display"]["temperature_max"], "30°C")
        self.assertEqual(self.client.put("/v1/preferences/units", json={"temperature": "rankine"}).status_code, 422)

    def test_invalid_preferences_are_rejected(self):
        resp = self.client.put("/v1/preferences", json={"temp_min": 90, "temp_max": 80, "rain_min": 1, "rain_max": 0})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["errors"], {"temp_min": "Min cannot exceed Max", "rain_min": "Min cannot exceed Max"})
        self.assertEqual(self.client.get("/v1/preferences").json()["temp_min"], 64.0)

    def test_selection_regrades_on_preference_change(self):
        body = {"latitude": 40.0, "longitude": -74.0, "timezone": "UTC", "name": "Home",
                "start": START.isoformat(), "end": END.isoformat()}
        resp = self.client.put("/v1/selection", json=body)
        self.assertEqual(resp.status_code, 200)
        state = resp.json()
        self.assertFalse(state["loading"])
        self.assertIsNone(state["error"])
        self.assertEqual(state["location"]["name"], "Home")
        self.assertEqual({d["grade"] for d in state["days"]}, {"fair"})

        self.client.put("/v1/preferences", json={"temp_max": 90})
        state = self.client.get("/v1/selection").json()
        self.assertEqual({d["grade"] for d in state["days"]}, {"ideal"})
        self.assertEqual(self.fake.forecast_calls, 1)

    def test_selection_with_start_only(self):
        start = dt.date.today() + dt.timedelta(days=20)
        body = {"latitude": 40.0, "longitude": -74.0, "start": start.isoformat()}
        resp = self.client.put("/v1/selection", json=body)
        self.assertEqual(resp.status_code, 200)
        state = resp.json()
        self.assertEqual(len(state["days"]), 14)
        self.assertEqual(state["end"], (start + dt.timedelta(days=13)).isoformat())
        self.assertFalse(self.client.get("/v1/selection").json()["loading"])

    def test_selection_inverted_range_is_400(self):
        body = {"latitude": 40.0, "longitude": -74.0, "start": END.isoformat(), "end": START.isoformat()}
        self.assertEqual(self.client.put("/v1/selection", json=body).status_code, 400)
        state = self.client.get("/v1/selection").json()
        self.assertFalse(state["loading"])
        self.assertIsNone(state["location"])

    def test_selection_failure_reports_error(self):
        self.fake.forecast_error = ProviderError("upstream down")
        body = {"latitude": 40.0, "longitude": -74.0, "start": START.isoformat(), "end": END.isoformat()}
        state = self.client.put("/v1/selection", json=body).json()
        self.assertEqual(state["error"], "upstream down")
        self.assertEqual(state["days"], [])

    def test_empty_selection(self):
        state = self.client.get("/v1/selection").json()
        self.assertIsNone(state["location"])
        self.assertEqual(state["days"], [])

    def test_historical(self):
        resp = self.client.get("/v1/historical", params={"date": "2024-06-01", "latitude": 40.0, "longitude": -74.0})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["years_with_data"], 10)
        self.assertEqual([r["year"] for r in body["records"]][:2], [2023, 2022])
        self.assertEqual(body["averages"]["temperature_max"], 30.0)

    def test_geocode(self):
        resp = self.client.get("/v1/geocode", params={"q": "Oslo"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["results"][0]["timezone"], "Europe/Oslo")
        self.assertEqual(self.fake.geocode_calls, [("Oslo", 5)])
        self.assertEqual(self.client.get("/v1/geocode", params={"q": ""}).status_code, 422)

    def test_cache_clear_keeps_preferences(self):
        self.client.put("/v1/preferences", json={"wind_max": 20})
        self.client.get("/v1/outlook", params=_outlook_params())
        resp = self.client.post("/v1/cache/clear")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["removed"], 1)
        self.assertEqual(self.client.get("/v1/preferences").json()["wind_max"], 20.0)
        self.client.get("/v1/outlook", params=_outlook_params())
        self.assertEqual(self.fake.forecast_calls, 2)


if __name__ == "__main__":
    unittest.main()
