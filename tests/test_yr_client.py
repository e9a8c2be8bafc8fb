import datetime as dt
import io
import json
import unittest
from unittest import mock
from urllib.parse import parse_qs, urlsplit

import requests

from forecast_ingest.data_sources import yr_client
from forecast_ingest.data_sources.yr_client import YrClient, decode_forecast
from forecast_ingest.errors import DecodeError, StatusError, TransportError
from forecast_ingest.models import ZERO_TIME, Forecast, Position


class _TrackingRaw(io.BytesIO):
    """Stand-in for urllib3's raw response that records connection release."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.released = False

    def release_conn(self):
        self.released = True


def _make_response(status_code: int, body: bytes) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    resp.raw = _TrackingRaw(body)
    return resp


class FakeTransport:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append((request, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


def _make_payload(samples: int = 2) -> dict:
    start = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [10.7461, 59.9127, 13.0]},
        "properties": {
            "meta": {
                "updated_at": "2024-01-01T00:00:00Z",
                "units": {"air_temperature": "celsius", "wind_speed": "m/s"},
            },
            "timeseries": [
                {
                    "time": (start + dt.timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M:%SZ"),
                    "data": {
                        "instant": {"details": {"air_temperature": 1.5 + i, "wind_speed": 3.0}},
                        "next_1_hours": {"summary": {"symbol_code": "cloudy"}},
                    },
                }
                for i in range(samples)
            ],
        },
    }


POSITION = Position(latitude=59.91273, longitude=10.74609, altitude=12.6)


class TestYrClientRequest(unittest.TestCase):
    def test_single_request_with_formatted_query(self):
        transport = FakeTransport(_make_response(200, json.dumps(_make_payload()).encode()))
        client = YrClient("https://example.test/locationforecast/2.0/", "forecast-test/1.0", transport)

        client.fetch(POSITION)

        self.assertEqual(len(transport.sent), 1)
        request, kwargs = transport.sent[0]
        parts = urlsplit(request.url)
        self.assertEqual(request.method, "GET")
        self.assertEqual(parts.path, "/locationforecast/2.0/complete")
        self.assertEqual(
            parse_qs(parts.query),
            {"lat": ["59.9127"], "lon": ["10.7461"], "altitude": ["13"]},
        )
        self.assertEqual(request.headers["User-Agent"], "forecast-test/1.0")
        self.assertEqual(kwargs["timeout"], yr_client.DEFAULT_TIMEOUT)

    def test_negative_coordinates_keep_four_decimals(self):
        transport = FakeTransport(_make_response(200, b""))
        client = YrClient("https://example.test", "ua", transport)

        client.fetch(Position(latitude=-33.86882, longitude=-151.20929, altitude=-2.0))

        query = parse_qs(urlsplit(transport.sent[0][0].url).query)
        self.assertEqual(query["lat"], ["-33.8688"])
        self.assertEqual(query["lon"], ["-151.2093"])
        self.assertEqual(query["altitude"], ["-2"])


class TestYrClientResponses(unittest.TestCase):
    def test_200_decodes_forecast(self):
        payload = _make_payload(samples=3)
        response = _make_response(200, json.dumps(payload).encode())
        client = YrClient("https://example.test", "ua", FakeTransport(response))

        forecast = client.fetch(POSITION)

        self.assertEqual(forecast, Forecast.model_validate(payload))
        self.assertEqual(len(forecast.timeseries), 3)
        self.assertEqual(forecast.timeseries[2].details.air_temperature, 3.5)
        self.assertEqual(forecast.properties.meta.units["wind_speed"], "m/s")
        self.assertEqual(forecast.timeseries[0].time, dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc))
        self.assertTrue(response.raw.released)

    def test_non_200_raises_status_error_without_decoding(self):
        body = b'{"error": "too many requests"}'
        response = _make_response(429, body)
        client = YrClient("https://example.test", "ua", FakeTransport(response))

        with mock.patch.object(yr_client, "decode_forecast") as decode:
            with self.assertRaises(StatusError) as ctx:
                client.fetch(POSITION)

        decode.assert_not_called()
        self.assertEqual(ctx.exception.status_code, 429)
        # body drained and connection released
        self.assertEqual(response.raw.tell(), len(body))
        self.assertTrue(response.raw.released)

    def test_request_forecast_returns_status_instead_of_raising(self):
        client = YrClient("https://example.test", "ua", FakeTransport(_make_response(404, b"not found")))

        status_code, forecast = client.request_forecast(POSITION)

        self.assertEqual(status_code, 404)
        self.assertIsNone(forecast)

    def test_empty_body_yields_zero_value_forecast(self):
        client = YrClient("https://example.test", "ua", FakeTransport(_make_response(200, b"")))

        forecast = client.fetch(POSITION)

        self.assertEqual(forecast, Forecast())
        self.assertEqual(forecast.timeseries, [])
        self.assertEqual(forecast.geometry.coordinates, [])

    def test_malformed_body_raises_decode_error(self):
        response = _make_response(200, b'{"type": "Feature", "geometry": ')
        client = YrClient("https://example.test", "ua", FakeTransport(response))

        with self.assertRaises(DecodeError):
            client.fetch(POSITION)
        self.assertTrue(response.raw.released)

    def test_transport_failure_raises_transport_error(self):
        cause = requests.ConnectionError("connection refused")
        client = YrClient("https://example.test", "ua", FakeTransport(exc=cause))

        with self.assertRaises(TransportError) as ctx:
            client.fetch(POSITION)
        self.assertIs(ctx.exception.__cause__, cause)

    def test_missing_response_raises_transport_error(self):
        client = YrClient("https://example.test", "ua", FakeTransport(response=None))

        with self.assertRaises(TransportError):
            client.fetch(POSITION)


class TestDecodeForecast(unittest.TestCase):
    def test_whitespace_body_is_zero_value(self):
        self.assertEqual(decode_forecast(b"  \n"), Forecast())

    def test_wrong_types_raise_decode_error(self):
        with self.assertRaises(DecodeError):
            decode_forecast(b'{"properties": {"timeseries": "soon"}}')

    def test_missing_details_default_to_zero(self):
        forecast = decode_forecast(b'{"properties": {"timeseries": [{"time": "2024-01-01T00:00:00Z"}]}}')
        self.assertEqual(forecast.timeseries[0].details.air_temperature, 0.0)

    def test_null_document_is_zero_value(self):
        self.assertEqual(decode_forecast(b"null"), Forecast())
        self.assertEqual(decode_forecast(b" null\n"), Forecast())

    def test_sample_without_time_gets_zero_time(self):
        forecast = decode_forecast(b'{"properties": {"timeseries": [{"data": {}}]}}')

        self.assertEqual(len(forecast.timeseries), 1)
        self.assertEqual(forecast.timeseries[0].time, ZERO_TIME)

    def test_null_fields_keep_their_defaults(self):
        body = json.dumps(
            {
                "type": "Feature",
                "geometry": {"type": None, "coordinates": None},
                "properties": {
                    "meta": {"updated_at": None, "units": None},
                    "timeseries": [
                        {
                            "time": "2024-01-01T00:00:00Z",
                            "data": {"instant": {"details": {"air_temperature": 4.5, "fog_area_fraction": None}}},
                        },
                        None,
                    ],
                },
            }
        ).encode()

        forecast = decode_forecast(body)

        self.assertEqual(forecast.geometry.coordinates, [])
        self.assertEqual(forecast.properties.meta.units, {})
        self.assertEqual(forecast.timeseries[0].details.fog_area_fraction, 0.0)
        self.assertEqual(forecast.timeseries[0].details.air_temperature, 4.5)
        self.assertEqual(forecast.timeseries[1].time, ZERO_TIME)

    def test_only_first_json_value_is_read(self):
        forecast = decode_forecast(b'{"type": "Feature"}\n<html>')
        self.assertEqual(forecast.type, "Feature")

    def test_non_json_body_raises_decode_error(self):
        with self.assertRaises(DecodeError):
            decode_forecast(b"<html>maintenance</html>")


if __name__ == "__main__":
    unittest.main()
