import datetime as dt
import unittest

import requests

from picnic_planner.data_sources import open_meteo_client
from picnic_planner.errors import PartialDataError, ProviderError


class DummyResp:
    def __init__(self, payload, status_code=200, bad_json=False):
        self._payload = payload
        self.status_code = status_code
        self._bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def _daily_payload():
    return {
        "daily_units": {
            "time": "iso8601",
            "temperature_2m_max": "°C",
            "temperature_2m_min": "°C",
            "precipitation_sum": "mm",
            "wind_speed_10m_max": "km/h",
            "relative_humidity_2m_mean": "%",
        },
        "daily": {
            "time": ["2024-06-01", "2024-06-02", "2024-06-03"],
            "temperature_2m_max": [24.1, None, 19.5],
            "temperature_2m_min": [14.0, 15.2, 11.0],
            "precipitation_sum": [0.0, 3.2, 0.4],
            "wind_speed_10m_max": [10.4, 22.0, 8.1],
            "relative_humidity_2m_mean": [55, 80, 61],
        },
    }


class TestOpenMeteoClient(unittest.TestCase):
    def setUp(self):
        self._orig_session = open_meteo_client.session

    def tearDown(self):
        open_meteo_client.session = self._orig_session

    def _use(self, **kwargs):
        fake = FakeSession(**kwargs)
        open_meteo_client.session = fake
        return fake

    def test_fetch_daily_forecast_parses_days(self):
        fake = self._use(response=DummyResp(_daily_payload()))
        days = open_meteo_client.fetch_daily_forecast(
            40.7, -74.0, start_date=dt.date(2024, 6, 1), end_date=dt.date(2024, 6, 3), timezone="America/New_York"
        )
        self.assertEqual([d.date for d in days], [dt.date(2024, 6, 1), dt.date(2024, 6, 2), dt.date(2024, 6, 3)])
        self.assertEqual(days[0].measurement.temperature_max, 24.1)
        self.assertEqual(days[0].measurement.precipitation_sum, 0.0)
        self.assertEqual(days[2].measurement.relative_humidity_mean, 61.0)

        params = fake.requests[0]["params"]
        self.assertEqual(fake.requests[0]["url"], open_meteo_client.OPEN_METEO_FORECAST_URL)
        self.assertEqual(params["start_date"], "2024-06-01")
        self.assertEqual(params["end_date"], "2024-06-03")
        self.assertEqual(params["timezone"], "America/New_York")
        self.assertEqual(params["temperature_unit"], "celsius")
        self.assertEqual(params["wind_speed_unit"], "kmh")
        self.assertEqual(params["precipitation_unit"], "mm")
        self.assertIn("relative_humidity_2m_mean", params["daily"])
        self.assertIsNone(fake.requests[0]["timeout"])

    def test_null_and_missing_values_are_absent(self):
        payload = _daily_payload()
        del payload["daily"]["relative_humidity_2m_mean"]
        payload["daily"]["wind_speed_10m_max"] = [10.4]
        self._use(response=DummyResp(payload))
        days = open_meteo_client.fetch_daily_forecast(
            1.0, 2.0, start_date=dt.date(2024, 6, 1), end_date=dt.date(2024, 6, 3)
        )
        self.assertEqual(len(days), 3)
        self.assertIsNone(days[1].measurement.temperature_max)
        self.assertIsNone(days[0].measurement.relative_humidity_mean)
        self.assertEqual(days[0].measurement.wind_speed_max, 10.4)
        self.assertIsNone(days[2].measurement.wind_speed_max)

    def test_non_base_units_are_converted(self):
        payload = _daily_payload()
        payload["daily_units"]["temperature_2m_max"] = "°F"
        payload["daily_units"]["precipitation_sum"] = "inch"
        payload["daily"]["temperature_2m_max"] = [77.0, None, 32.0]
        payload["daily"]["precipitation_sum"] = [1.0, 0.0, None]
        self._use(response=DummyResp(payload))
        with self.assertLogs("picnic_planner.data_sources.open_meteo_client", level="WARNING"):
            days = open_meteo_client.fetch_daily_forecast(
                1.0, 2.0, start_date=dt.date(2024, 6, 1), end_date=dt.date(2024, 6, 3)
            )
        self.assertAlmostEqual(days[0].measurement.temperature_max, 25.0)
        self.assertAlmostEqual(days[2].measurement.temperature_max, 0.0)
        self.assertAlmostEqual(days[0].measurement.precipitation_sum, 25.4)
        self.assertEqual(days[0].measurement.temperature_min, 14.0)

    def test_http_error_becomes_provider_error(self):
        self._use(response=DummyResp({"error": True}, status_code=500))
        with self.assertRaises(ProviderError) as ctx:
            open_meteo_client.fetch_daily_forecast(
                1.0, 2.0, start_date=dt.date(2024, 6, 1), end_date=dt.date(2024, 6, 1)
            )
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIsInstance(ctx.exception.__cause__, requests.HTTPError)

    def test_transport_error_becomes_provider_error(self):
        self._use(exc=requests.ConnectionError("dns failure"))
        with self.assertRaises(ProviderError) as ctx:
            open_meteo_client.geocode("Paris")
        self.assertIsNone(ctx.exception.status_code)

    def test_invalid_json_becomes_provider_error(self):
        self._use(response=DummyResp(None, bad_json=True))
        with self.assertRaises(ProviderError):
            open_meteo_client.fetch_daily_forecast(
                1.0, 2.0, start_date=dt.date(2024, 6, 1), end_date=dt.date(2024, 6, 1)
            )

    def test_missing_daily_block_is_an_error(self):
        self._use(response=DummyResp({"reason": "nothing"}))
        with self.assertRaises(ProviderError):
            open_meteo_client.fetch_daily_forecast(
                1.0, 2.0, start_date=dt.date(2024, 6, 1), end_date=dt.date(2024, 6, 1)
            )

    def test_inverted_range_rejected_without_request(self):
        fake = self._use(response=DummyResp(_daily_payload()))
        with self.assertRaises(ValueError):
            open_meteo_client.fetch_daily_forecast(
                1.0, 2.0, start_date=dt.date(2024, 6, 2), end_date=dt.date(2024, 6, 1)
            )
        self.assertEqual(fake.requests, [])

    def test_fetch_historical_day(self):
        payload = _daily_payload()
        payload["daily"] = {k: v[:1] for k, v in payload["daily"].items()}
        fake = self._use(response=DummyResp(payload))
        measurement = open_meteo_client.fetch_historical_day(40.7, -74.0, dt.date(2019, 6, 1), timeout=7)
        self.assertEqual(measurement.temperature_max, 24.1)
        req = fake.requests[0]
        self.assertEqual(req["url"], open_meteo_client.OPEN_METEO_ARCHIVE_URL)
        self.assertEqual(req["params"]["start_date"], "2019-06-01")
        self.assertEqual(req["params"]["end_date"], "2019-06-01")
        self.assertEqual(req["timeout"], 7)

    def test_historical_day_without_rows_is_partial(self):
        self._use(response=DummyResp({"daily": {"time": []}}))
        with self.assertRaises(PartialDataError):
            open_meteo_client.fetch_historical_day(40.7, -74.0, dt.date(1900, 6, 1))

    def test_geocode_maps_results(self):
        payload = {
            "results": [
                {"name": "Paris", "latitude": 48.85, "longitude": 2.35, "country": "France",
                 "admin1": "Île-de-France", "timezone": "Europe/Paris"},
                {"name": "Paris", "latitude": 33.66, "longitude": -95.56, "country": "United States",
                 "admin1": "Texas", "timezone": "America/Chicago"},
                {"name": "Broken"},
            ]
        }
        fake = self._use(response=DummyResp(payload))
        results = open_meteo_client.geocode("  Paris ", count=5)
        self.assertEqual([r.region for r in results], ["Île-de-France", "Texas"])
        params = fake.requests[0]["params"]
        self.assertEqual(params["name"], "Paris")
        self.assertEqual(params["count"], 5)
        self.assertEqual(params["language"], "en")

    def test_geocode_no_match_and_blank_query(self):
        fake = self._use(response=DummyResp({"generationtime_ms": 0.5}))
        self.assertEqual(open_meteo_client.geocode("Nowhereville"), [])
        self.assertEqual(open_meteo_client.geocode("   "), [])
        self.assertEqual(len(fake.requests), 1)


if __name__ == "__main__":
    unittest.main()
