import pytest

from sleepsun.errors import RemoteSourceError
from sleepsun.services.remote import SunriseSunsetClient, parse_payload

OK = {
  "status": "OK",
  "results": {
    "sunrise": "2024-01-01T08:06:00+00:00",
    "sunset": "2024-01-01T16:01:00+00:00",
    "day_length": 28500,
  },
}


def test_parse_payload_uses_day_length():
  out = parse_payload(OK)
  assert out["sunrise"] == 1704067200 + 8 * 3600 + 360
  assert out["daylength"] == 28500


def test_parse_payload_derives_day_length():
  body = {"status": "OK", "results": {k: v for k, v in OK["results"].items() if k != "day_length"}}
  out = parse_payload(body)
  assert out["daylength"] == out["sunset"] - out["sunrise"]


@pytest.mark.parametrize("body", [
  {"status": "INVALID_REQUEST", "results": ""},
  {"status": "OK"},
  {"status": "OK", "results": {"sunrise": "soon", "sunset": "later"}},
  ["not", "an", "object"],
])
def test_parse_payload_rejects(body):
  with pytest.raises(RemoteSourceError):
    parse_payload(body)


@pytest.mark.asyncio
async def test_close_without_session_is_noop():
  client = SunriseSunsetClient()
  await client.close()
  await client.close()
